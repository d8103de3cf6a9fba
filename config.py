"""
Centralized configuration for EaaS.

Loads environment variables from .env and provides resolved paths and settings.
Job-level settings (models, prompts, concurrency) live in the job config file;
see eaas.evaluation.config.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def get_path_var(var_name: str, default: str) -> Path:
    """Retrieve a path from environment variables, resolving to absolute."""
    value = os.getenv(var_name) or default
    return Path(value).expanduser().resolve()


# -- Paths -------------------------------------------------------------------

STATE_DIR = get_path_var("EAAS_STATE_DIR", str(Path.home() / ".eaas"))
RESULTS_DIR = get_path_var("EAAS_RESULTS_DIR", "./results")
LOG_DIR = STATE_DIR / "logs"

# -- Settings -----------------------------------------------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
DEBUG = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")

# API key environment variables for hosted backends
PROVIDER_API_KEY_VARS = {
    "together": "TOGETHER_API_KEY",
    "groq": "GROQ_API_KEY",
    "cohere": "COHERE_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}

OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")

