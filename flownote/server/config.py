"""
Server settings, read from the environment.

A `.env` file in the working directory (or the path in FLOWNOTE_ENV_FILE) is
loaded first so settings can live next to the notebooks instead of being
exported by hand.

    FLOWNOTE_SERVER_ROOT      root directory `filepath` parameters resolve against
    FLOWNOTE_LIBRARY_PATH     JSON algorithm library (built-in library when unset)
    FLOWNOTE_WORKFLOW_IMPORT  import line emitted for the algorithm library
    FLOWNOTE_LOG_LEVEL        logging level name (default INFO)
    FLOWNOTE_CORS_ORIGINS     comma-separated origins allowed to call the API (default *)
    FLOWNOTE_HOST / FLOWNOTE_PORT
"""
from __future__ import annotations

import logging
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

from flownote.compiler.synthesizer import DEFAULT_WORKFLOW_IMPORT


class Settings(BaseModel):
    server_root: str = "."
    library_path: Optional[str] = None
    workflow_import: str = DEFAULT_WORKFLOW_IMPORT
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3001
    cors_origins: List[str] = ["*"]

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level '{value}'")
        return level

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> Settings:
        load_dotenv(env_file or os.environ.get("FLOWNOTE_ENV_FILE") or ".env")
        values = {
            "server_root": os.environ.get("FLOWNOTE_SERVER_ROOT"),
            "library_path": os.environ.get("FLOWNOTE_LIBRARY_PATH"),
            "workflow_import": os.environ.get("FLOWNOTE_WORKFLOW_IMPORT"),
            "log_level": os.environ.get("FLOWNOTE_LOG_LEVEL"),
            "host": os.environ.get("FLOWNOTE_HOST"),
            "port": os.environ.get("FLOWNOTE_PORT"),
            "cors_origins": os.environ.get("FLOWNOTE_CORS_ORIGINS"),
        }
        return cls(**{k: v for k, v in values.items() if v})


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
