"""コマンドラインから合成リクエストを実行するエントリポイント。"""

import argparse
import asyncio
import json
import sys
import time
import traceback
from pathlib import Path
from typing import Any, Dict, Optional

from mediacompose.components.config import load_config, load_default_config, merge_configs
from mediacompose.exceptions import EncodeFailed, ValidationError
from mediacompose.pipeline import (
    MODES,
    CompositionPipeline,
    build_config,
    describe_request,
    run_request,
)
from mediacompose.utils.logger import (
    KVLogger,
    get_logger,
    reconfigure_logging,
    shutdown_logging,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compose images or a base video with audio tracks and subtitles using FFmpeg."
    )
    parser.add_argument(
        "request_path",
        type=str,
        help=f"Path to the YAML (or JSON) request file. 'mode' is one of: {', '.join(MODES)}.",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Path to the output file. Overrides 'output' in the request.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML file merged over the default configuration.",
    )
    parser.add_argument(
        "--dump-graph",
        action="store_true",
        help="Print the compiled filter graph and FFmpeg arguments as JSON without encoding.",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="If set, outputs logs in machine-readable JSON format.",
    )
    parser.add_argument(
        "--log-kv",
        action="store_true",
        help="If set, outputs logs in human-readable Key-Value pair format.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging (includes FFmpeg stderr lines).",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar while encoding.",
    )
    return parser


def load_request(request_path: str) -> Dict[str, Any]:
    """リクエストを読み込む。``config`` キーは設定の上書きとして扱う。"""
    data = load_config(request_path)
    mode = data.get("mode", "images")
    if mode not in MODES:
        raise ValidationError(
            f"Unknown mode '{mode}', expected one of {', '.join(MODES)}", field="mode"
        )
    return data


def resolve_config(request: Dict[str, Any], config_path: Optional[str]):
    cfg = load_default_config()
    if config_path:
        cfg = merge_configs(cfg, load_config(config_path))
    return build_config(request.get("config"), base=cfg)


async def main(argv=None) -> None:
    """コマンドライン引数を解析し合成を実行する。"""
    args = build_parser().parse_args(argv)

    reconfigure_logging(log_json=args.log_json, log_kv=args.log_kv, debug_mode=args.debug)
    logger: KVLogger = get_logger()

    start_time = time.time()

    try:
        request = load_request(args.request_path)
        config = resolve_config(request, args.config)
        pipeline = CompositionPipeline(config, show_progress=args.progress)

        if args.dump_graph:
            described = await describe_request(request, pipeline, args.output)
            print(json.dumps(described, ensure_ascii=False, indent=2))
            return

        output = args.output or request.get("output")
        if output:
            Path(output).parent.mkdir(parents=True, exist_ok=True)

        logger.kv_info(
            "Composition started.",
            kv_pairs={"Event": "CompositionStart", "Mode": request.get("mode", "images")},
        )
        result = await run_request(request, pipeline, args.output)
        logger.kv_info(
            "Composition completed successfully.",
            kv_pairs={"Event": "CompositionSuccess", "Output": result.get("output_path")},
        )
        print(json.dumps(result, ensure_ascii=False, indent=2))
        elapsed_time = time.time() - start_time
        logger.kv_info(
            f"Total execution time: {elapsed_time:.2f} seconds.",
            kv_pairs={
                "Event": "TotalExecutionTime",
                "Duration": f"{elapsed_time:.2f}s",
            },
        )
    except ValidationError as e:
        logger.kv_error(
            f"Validation Error: {e.message}",
            kv_pairs={
                "Event": "ValidationError",
                "Message": e.message,
                "Field": e.field,
                "Line": e.line_number,
                "Column": e.column_number,
            },
        )
        sys.exit(1)
    except EncodeFailed as e:
        logger.kv_error(
            f"Encoding failed with exit status {e.exit_status}",
            kv_pairs={"Event": "EncodeFailed", "ExitStatus": e.exit_status, "Log": e.log_tail},
        )
        sys.exit(1)
    except Exception as e:
        elapsed_time = time.time() - start_time
        logger.kv_error(
            f"An unexpected error occurred during composition: {e}",
            kv_pairs={
                "Event": "UnexpectedError",
                "Message": str(e),
                "Traceback": traceback.format_exc(),
            },
        )
        logger.kv_error(
            f"Total execution time before error: {elapsed_time:.2f} seconds.",
            kv_pairs={
                "Event": "TotalExecutionTimeOnError",
                "Duration": f"{elapsed_time:.2f}s",
            },
        )
        sys.exit(1)
    finally:
        shutdown_logging()


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
