from .prompts import WORKING_INDICATOR
from .router import (
    ChatContext,
    ChatReply,
    ChatRouter,
    Intent,
    IntentClassifier,
    KeywordIntentClassifier,
    extract_patch,
)
