"""Instruction text sent to generation backends."""

from livetranslate.core.languages import language_name

_INTERPRETER_PROMPT = (
    "You are a professional interpreter. Interpret the following text from {source} to {target}. "
    "Respond ONLY with the translated text, without any introductory phrases, explanations, or commentary. "
    "If the text is already in {target}, still provide the translation to ensure proper {target} grammar "
    'and style. The text to translate is: "{text}"'
)


def build_instruction(text: str, source_lang: str, target_lang: str) -> str:
    """Translation-only instruction; the backend is asked to translate even when languages coincide."""
    return _INTERPRETER_PROMPT.format(
        source=language_name(source_lang),
        target=language_name(target_lang),
        text=text,
    )
