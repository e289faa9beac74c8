"""Configuration module - re-exports all config values."""
from .paths import *
from .ffmpeg import *
from .server import *
