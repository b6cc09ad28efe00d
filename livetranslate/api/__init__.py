"""HTTP route modules mounted by ``livetranslate.server``."""
