import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Paths
BASE_DIR = Path(__file__).parent
DATA_DIR = Path(os.getenv("PROMPTSTUDIO_DATA_DIR", BASE_DIR / "data"))
STORAGE_DIR = DATA_DIR / "storage"
DB_PATH = DATA_DIR / "promptstudio.db"
STATIC_DIR = BASE_DIR / "static"

# Server
HOST = "127.0.0.1"
PORT = int(os.getenv("PROMPTSTUDIO_PORT", "8787"))
PUBLIC_BASE_URL = os.getenv("PROMPTSTUDIO_PUBLIC_URL", f"http://{HOST}:{PORT}")

# Audio
SAMPLE_RATE = 16000
CHANNELS = 1
BLOCK_DURATION_MS = 100
TIMESLICE_SECS = 1
LEVEL_POLL_SECS = 0.1
MIC_GAIN = 1.0
DESKTOP_GAIN = 0.8

# Storage
STORAGE_BUCKET = "audio-recordings"
STORAGE_SECRET = os.getenv("PROMPTSTUDIO_STORAGE_SECRET", "change-me")
SIGNED_URL_TTL_SECS = 3600

# LLM
LLM_PROVIDER = os.getenv("PROMPTSTUDIO_LLM_PROVIDER", "gemini")
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-pro")
GEMINI_URL = os.getenv("GEMINI_URL", "https://generativelanguage.googleapis.com/v1beta")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")
ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"
OLLAMA_MODEL = os.getenv("PROMPTSTUDIO_OLLAMA_MODEL", "llama3")
OLLAMA_URL = os.getenv("PROMPTSTUDIO_OLLAMA_URL", "http://localhost:11434")
LLM_TIMEOUT_SECS = 300
