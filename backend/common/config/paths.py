"""Path configuration for the backend."""
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=BASE_DIR / ".env")

# Directories
OUTPUT_DIR = Path(os.getenv("WORD_GARDEN_OUTPUT_DIR", str(BASE_DIR / "output")))

# Artifact naming
ARTIFACT_PREFIX = "word-garden"
VIDEO_EXTENSION = "webm"
PREVIEW_EXTENSION = "png"
