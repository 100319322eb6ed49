#!/usr/bin/env python3
"""禁烟信息焦点小组示例。 / "nosmoke" focus group example.

用法 / Usage:
    export OPENAI_API_KEY=... ANTHROPIC_API_KEY=...
    python examples/focus_nosmoke.py --iterations 2

数据位于 examples/data/，模型配置见 examples/llm_config.yaml。
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

EXAMPLES_DIR = Path(__file__).resolve().parent
REPO_ROOT = EXAMPLES_DIR.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from grouper import focus  # noqa: E402
from grouper.primitives.events import FocusEvent  # noqa: E402

_BAR_WIDTH = 30


def _progress_bar(progress: float) -> str:
    filled = int(_BAR_WIDTH * progress)
    return f"[{'█' * filled}{'░' * (_BAR_WIDTH - filled)}] {progress:>5.1%}"


def print_progress(event: FocusEvent) -> None:
    """终端进度回调（同步）。 / Terminal progress callback (sync)."""
    detail = event.detail or {}
    if event.type == "iteration_start":
        print(f"\n▶ 第 {event.iteration}/{event.max_iterations} 轮: "
              f"{detail.get('variants', '?')} 条措辞")
    elif event.type == "progress":
        print(f"\r  {_progress_bar(event.progress)} {event.current}/{event.total}",
              end="", flush=True)
        if event.current == event.total:
            print()
    elif event.type == "iteration_end":
        score = detail.get("decision_score")
        score_str = f"{score:.2f}" if score is not None else "-"
        print(f"✓ 本轮最佳 ({score_str}): {detail.get('best_wording')}")
    elif event.type == "evolved":
        for wording in detail.get("wordings", []):
            print(f"  + {wording}")
    elif event.type == "terminated":
        print(f"\n■ 会话结束，共 {event.iteration} 轮")


async def main() -> None:
    parser = argparse.ArgumentParser(description="Run the nosmoke focus group")
    parser.add_argument("--group", default="teens", help="参与者小组（默认 teens）")
    parser.add_argument("--message", default="nosmoke", help="信息名（默认 nosmoke）")
    parser.add_argument("--iterations", type=int, default=None, help="最大迭代轮数")
    parser.add_argument("--verbose", action="store_true", help="DEBUG 日志")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    best = await focus(
        group=args.group,
        messages=args.message,
        data_dir=EXAMPLES_DIR / "data",
        config_file=str(EXAMPLES_DIR / "grouper.yaml"),
        overrides={"max_iterations": args.iterations},
        llm_config_file=str(EXAMPLES_DIR / "llm_config.yaml"),
        on_progress=print_progress,
    )
    print("\nBest scoring variants:")
    print(best.render())


if __name__ == "__main__":
    asyncio.run(main())
