"""AWS Lambda entry point for the change-stream trigger."""

from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import Any, Mapping, Optional

from loguru import logger

from .config import load_settings
from .pipeline import ArchivePipeline, PipelineReport, build_pipeline


@lru_cache()
def get_pipeline() -> ArchivePipeline:
    # built once per container; a bad configuration fails the cold start
    return build_pipeline(load_settings())


def handler(event: Optional[Mapping[str, Any]], context: Any = None) -> Optional[dict]:
    if not event or not event.get("Records"):
        logger.info("No records published by the change stream.")
        return None
    result: PipelineReport = asyncio.run(get_pipeline().process_event(event))
    return result.to_dict()
