# -*- coding: utf-8 -*-

import os

SANDBOX_IMAGE = os.getenv("SANDBOX_IMAGE", "python:3.12-slim")
CONTAINER_NAME_PREFIX = "taskagent-sandbox-"

# Code iteration budget (1-indexed, inclusive).
MAX_ITER = 8
MAX_CODE_SECONDS = int(os.getenv("MAX_CODE_SECONDS", "60"))
MAX_CODE_OUTPUT_CHARS = 12000

DEFAULT_TIMEOUT = int(os.getenv("MODEL_TIMEOUT", "150"))
DEFAULT_MAX_TOKENS = int(os.getenv("MODEL_MAX_TOKENS", "1200"))
CONTEXT_MAX_CHARS = int(os.getenv("CONTEXT_MAX_CHARS", "24000"))

MAX_REPLAN_DEPTH = int(os.getenv("MAX_REPLAN_DEPTH", "2"))

BING_ENDPOINT = os.getenv("BING_ENDPOINT", "https://api.bing.microsoft.com/v7.0/search")
BING_RESULT_COUNT = int(os.getenv("BING_RESULT_COUNT", "1"))
WEB_TIMEOUT = int(os.getenv("WEB_TIMEOUT", "20"))
MAX_WEB_BYTES = 2_000_000
USER_AGENT = "taskagent/0.1"
