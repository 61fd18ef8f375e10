"""Headless capability probe for the models on the quick list.

Usage::

    llm-probe
    llm-probe --write-cache
    QUICK_LIST_JSON='[{"provider": "openai", "model": "gpt-4o"}]' llm-probe --json

API keys come from ``~/.llm-tabs/keys.json`` (``{"openai": "sk-..."}``) and
the provider environment variables, which take precedence.
"""

import argparse
import json
import logging
import os
import sys
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from llm_capability_probe.cache import (
    CapabilityCache,
    QuickListEntry,
    attach_file_persistence,
    load_quick_list,
)
from llm_capability_probe.exceptions import ConfigurationException
from llm_capability_probe.output_format import (
    format_probe_table_row,
    render_json,
    render_minimal,
    render_table,
)
from llm_capability_probe.probing import (
    CancellationToken,
    ModelProbeResult,
    ProbeConfig,
    ProbeProgress,
    ProbeTarget,
    probe_models,
)
from llm_capability_probe.probing.fixtures import get_fixture_stats
from llm_capability_probe.providers import provider_requires_api_key
from llm_capability_probe.utils.config import (
    get_default_cache_path,
    get_default_quick_list_path,
    get_probe_config,
    load_environment,
    resolve_api_keys,
)

logger = logging.getLogger(__name__)

QUICK_LIST_ENV_VAR = "QUICK_LIST_JSON"

_QUICK_LIST_ADAPTER = TypeAdapter(list[QuickListEntry])

_EPILOG = """\
quick list format:
  [{"provider": "openai", "model": "gpt-4o"}, ...]

environment:
  QUICK_LIST_JSON      quick list as a JSON array
  OPENAI_API_KEY, ANTHROPIC_API_KEY, GEMINI_API_KEY, XAI_API_KEY,
  OPENROUTER_API_KEY, FIREWORKS_API_KEY, MINIMAX_API_KEY
  LLM_PROBE_TIMEOUT_MS, LLM_PROBE_MAX_RETRIES, LLM_PROBE_RETRY_DELAY_MS,
  LLM_PROBE_CONCURRENCY, LLM_PROBE_SKIP_STREAMING, LLM_PROBE_HOME
"""


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="llm-probe",
        description="Probe vision and PDF capabilities of quick-list models.",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-w",
        "--write-cache",
        action="store_true",
        help="Write completed probe results to the capability cache file.",
    )
    output = parser.add_mutually_exclusive_group()
    output.add_argument(
        "--json",
        dest="output",
        action="store_const",
        const="json",
        help="Print results as JSON.",
    )
    output.add_argument(
        "--minimal",
        dest="output",
        action="store_const",
        const="minimal",
        help="Print one status line per model.",
    )
    parser.set_defaults(output="table")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log every probe attempt."
    )
    parser.add_argument(
        "--quick-list", metavar="JSON", help="Quick list as a JSON string."
    )
    parser.add_argument(
        "--quick-list-file",
        metavar="PATH",
        type=Path,
        help="Quick list file (default: ~/.llm-tabs/quick-list.json).",
    )
    parser.add_argument(
        "--keys-file",
        metavar="PATH",
        type=Path,
        help="API keys JSON file (default: ~/.llm-tabs/keys.json).",
    )
    parser.add_argument(
        "--timeout", metavar="MS", type=int, help="Per-request timeout (default 15000)."
    )
    parser.add_argument(
        "--concurrency", metavar="N", type=int, help="Models probed at once."
    )
    parser.add_argument(
        "--cache-file",
        metavar="PATH",
        type=Path,
        help="Capability cache file used with --write-cache.",
    )
    return parser.parse_args(argv)


def _parse_quick_list_json(raw: str, origin: str) -> list[QuickListEntry]:
    try:
        return _QUICK_LIST_ADAPTER.validate_json(raw)
    except ValidationError as e:
        print(f"Failed to parse {origin}: {e}", file=sys.stderr)
        return []


def resolve_quick_list(args: argparse.Namespace) -> list[QuickListEntry]:
    """Pick the models to probe: ``--quick-list``, the env var, then the file."""
    if args.quick_list:
        models = _parse_quick_list_json(args.quick_list, "--quick-list JSON")
        if models:
            return models

    env_json = os.getenv(QUICK_LIST_ENV_VAR)
    if env_json:
        models = _parse_quick_list_json(env_json, QUICK_LIST_ENV_VAR)
        if models:
            return models

    return load_quick_list(args.quick_list_file or get_default_quick_list_path()) or []


def _print_progress(progress: ProbeProgress) -> None:
    marker = {"probing": "...", "done": "Y"}.get(progress.status, "N")
    label = f"{progress.provider}:{progress.model}"[:50]
    print(f"[{progress.current}/{progress.total}] {label:<50} {marker}", flush=True)


def _run_probes(
    targets: list[ProbeTarget],
    config: ProbeConfig,
    cache: CapabilityCache | None,
    show_progress: bool,
) -> list[ModelProbeResult]:
    token = CancellationToken()
    with ThreadPoolExecutor(max_workers=1) as runner:
        future = runner.submit(
            probe_models,
            targets,
            config,
            token=token,
            on_progress=_print_progress if show_progress else None,
            cache=cache,
        )
        try:
            return future.result()
        except KeyboardInterrupt:
            print("Interrupted, cancelling in-flight probes...", file=sys.stderr)
            token.cancel("Interrupted")
            return future.result()


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_environment()

    quick_list = resolve_quick_list(args)
    if not quick_list:
        print(
            "No models to probe. Set QUICK_LIST_JSON, use --quick-list, "
            "or create a quick list file.",
            file=sys.stderr,
        )
        print(
            'Example: QUICK_LIST_JSON=\'[{"provider":"openai","model":"gpt-4o"}]\' '
            "llm-probe",
            file=sys.stderr,
        )
        return 1

    try:
        config = get_probe_config(
            timeout_ms=args.timeout,
            concurrency=args.concurrency,
            verbose_logging=args.verbose or None,
        )
    except ConfigurationException as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        stats = get_fixture_stats()
        logger.info(
            "Probing %d model(s); fixture sizes PNG=%dB PDF=%dB",
            len(quick_list),
            stats["png_size_bytes"],
            stats["pdf_size_bytes"],
        )

    api_keys = resolve_api_keys(args.keys_file)
    missing = sorted(
        {
            entry.provider
            for entry in quick_list
            if provider_requires_api_key(entry.provider)
            and entry.provider not in api_keys
        }
    )
    if missing:
        logger.warning("Missing API keys for: %s", ", ".join(missing))

    cache = None
    cache_path = args.cache_file or get_default_cache_path()
    if args.write_cache:
        cache = attach_file_persistence(CapabilityCache(), cache_path)

    targets = [
        ProbeTarget(
            provider=entry.provider,
            model=entry.model,
            api_key=api_keys.get(entry.provider),
            endpoint=entry.endpoint,
        )
        for entry in quick_list
    ]
    results = _run_probes(targets, config, cache, show_progress=args.output == "table")

    if args.output == "json":
        print(render_json(results))
    elif args.output == "minimal":
        print("\n".join(render_minimal(results)))
    else:
        print()
        print("\n".join(render_table([format_probe_table_row(r) for r in results])))
        print()

    if args.write_cache:
        print(f"Cache written to: {cache_path}")

    successful = sum(1 for r in results if r.text_probe.success)
    failed = len(results) - successful
    if args.verbose or failed:
        print(f"Summary: {successful} OK, {failed} failed")

    return 1 if successful == 0 else 0


if __name__ == "__main__":
    sys.exit(main())
