"""
Language code to display-name table.

Generation backends understand full language names better than BCP-47 codes, so
instructions always carry the display name.
"""

from typing import Dict

LANGUAGE_NAMES: Dict[str, str] = {
    'en-US': 'English (United States)',
    'en-GB': 'English (United Kingdom)',
    'es-ES': 'Spanish (Spain)',
    'es-MX': 'Spanish (Mexico)',
    'fr-FR': 'French (France)',
    'fr-CA': 'French (Canada)',
    'de-DE': 'German (Germany)',
    'it-IT': 'Italian (Italy)',
    'pt-BR': 'Portuguese (Brazil)',
    'pt-PT': 'Portuguese (Portugal)',
    'ru-RU': 'Russian (Russia)',
    'ja-JP': 'Japanese (Japan)',
    'ko-KR': 'Korean (South Korea)',
    'zh-CN': 'Chinese (Simplified, China)',
    'zh-TW': 'Chinese (Traditional, Taiwan)',
    'ar-SA': 'Arabic (Saudi Arabia)',
    'hi-IN': 'Hindi (India)',
    'th-TH': 'Thai (Thailand)',
    'vi-VN': 'Vietnamese (Vietnam)',
    'pl-PL': 'Polish (Poland)',
    'nl-NL': 'Dutch (Netherlands)',
    'sv-SE': 'Swedish (Sweden)',
    'da-DK': 'Danish (Denmark)',
    'no-NO': 'Norwegian (Norway)',
    'fi-FI': 'Finnish (Finland)',
    'tr-TR': 'Turkish (Turkey)',
    'he-IL': 'Hebrew (Israel)',
    'cs-CZ': 'Czech (Czech Republic)',
    'sk-SK': 'Slovak (Slovakia)',
    'hu-HU': 'Hungarian (Hungary)',
    'ro-RO': 'Romanian (Romania)',
    'bg-BG': 'Bulgarian (Bulgaria)',
    'hr-HR': 'Croatian (Croatia)',
    'sl-SI': 'Slovenian (Slovenia)',
    'et-EE': 'Estonian (Estonia)',
    'lv-LV': 'Latvian (Latvia)',
    'lt-LT': 'Lithuanian (Lithuania)',
    'uk-UA': 'Ukrainian (Ukraine)',
    'be-BY': 'Belarusian (Belarus)',
    'mk-MK': 'Macedonian (North Macedonia)',
    'sr-RS': 'Serbian (Serbia)',
    'bs-BA': 'Bosnian (Bosnia and Herzegovina)',
    'mt-MT': 'Maltese (Malta)',
    'is-IS': 'Icelandic (Iceland)',
    'ga-IE': 'Irish (Ireland)',
    'cy-GB': 'Welsh (Wales)',
    'eu-ES': 'Basque (Spain)',
    'ca-ES': 'Catalan (Spain)',
    'gl-ES': 'Galician (Spain)',
}


def language_name(code: str) -> str:
    """Display name for ``code``; unknown codes are returned unchanged."""
    return LANGUAGE_NAMES.get(code, code)
