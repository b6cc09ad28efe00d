"""
Live interpretation session.

Takes finalized recognized text (speech-to-text is an external producer),
translates it into each target language and queues the translations for
gapless playback.
"""

from __future__ import annotations

import inspect
from contextlib import aclosing
from typing import Any, Callable, Dict, Optional, Sequence

from livetranslate.audio.scheduler import AudioQueueScheduler
from livetranslate.core.cancellation import CancellationToken
from livetranslate.core.models import StreamEvent
from livetranslate.generation.normalizer import StreamNormalizer
from livetranslate.logging_config import get_logger, set_correlation_id

logger = get_logger(__name__)

LanguageEventCallback = Callable[[str, StreamEvent], Any]


class LiveInterpreter:
    def __init__(self, normalizer: StreamNormalizer, scheduler: Optional[AudioQueueScheduler] = None):
        self._normalizer = normalizer
        self._scheduler = scheduler

    @property
    def scheduler(self) -> Optional[AudioQueueScheduler]:
        return self._scheduler

    async def handle_final_text(
        self,
        text: str,
        source_lang: str,
        target_langs: Sequence[str],
        on_event: Optional[LanguageEventCallback] = None,
        cancel: Optional[CancellationToken] = None,
        speak: bool = True,
    ) -> Dict[str, str]:
        """
        Translate ``text`` into every language of ``target_langs`` in turn.

        Each non-fallback translation is handed to the scheduler as soon as its
        stream finishes. A cancelled request schedules no audio and skips the
        remaining languages.
        """
        set_correlation_id()
        results: Dict[str, str] = {}
        text = text.strip()
        if not text:
            return results

        for lang in target_langs:
            final: Optional[StreamEvent] = None
            async with aclosing(self._normalizer.iter_events(text, source_lang, lang, cancel)) as events:
                async for event in events:
                    if on_event is not None:
                        result = on_event(lang, event)
                        if inspect.isawaitable(result):
                            await result
                    if event.is_final:
                        final = event
            if final is None:
                continue
            results[lang] = final.accumulated_text

            if cancel is not None and cancel.cancelled:
                logger.info("Interpretation cancelled", target_lang=lang, reason=cancel.reason)
                break
            if final.is_fallback or not final.accumulated_text:
                continue
            if speak and self._scheduler is not None:
                self._scheduler.submit(final.accumulated_text, language=lang)

        logger.info("Interpretation finished", source_lang=source_lang, targets=list(results))
        return results
