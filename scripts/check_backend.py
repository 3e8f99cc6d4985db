#!/usr/bin/env python3
"""CLI helper that verifies whether the configured inference backends answer."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path


def _configure_logging() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


async def _check(model: str | None, prompt: str | None) -> int:
    from querydoc.config import get_settings  # noqa: WPS433
    from querydoc.llm import LLMError, get_backends, is_cloud_model  # noqa: WPS433

    settings = get_settings()
    backends = get_backends()
    try:
        local_ok = await backends.local.is_available()
        if local_ok:
            logging.info("Local inference server reachable at %s", settings.ollama_url)
        else:
            logging.warning("Local inference server unreachable at %s", settings.ollama_url)

        if prompt is None:
            return 0 if local_ok else 1

        model = model or settings.default_model
        backend = backends.cloud if is_cloud_model(model) else backends.local
        try:
            completion = await backend.generate(prompt, model)
        except LLMError as error:
            logging.error("Generation with %s failed: %s", model, error)
            return 1
        logging.info("Model '%s' answered: %s", model, completion.text[:200])
        if completion.stats is not None:
            logging.info("Stats: %s", completion.stats.as_dict())
        return 0
    finally:
        await backends.aclose()


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--model", help="Model id to use for the test prompt")
    parser.add_argument("--prompt", help="Send this prompt after the liveness probe")
    args = parser.parse_args()

    _configure_logging()

    project_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(project_root / "src"))

    return asyncio.run(_check(args.model, args.prompt))


if __name__ == "__main__":
    raise SystemExit(main())
