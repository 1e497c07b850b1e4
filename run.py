#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import argparse
import logging
import os
import sys

from taskagent.loop import run_agent


def read_input(stream=None) -> str | None:
    """
    Single line: press Return. Multi-line: end each line with '\\' to continue.
    Returns None at end of input.
    """
    stream = stream or sys.stdin
    lines = []
    while True:
        line = stream.readline()
        if not line:
            return "".join(lines) if lines else None
        if line.endswith("\\\n"):
            lines.append(line[:-2] + "\n")
            continue
        lines.append(line)
        return "".join(lines)


def print_outcome(out) -> None:
    if out.ok:
        print("\n" + "=" * 80 + "\nFINAL ANSWER\n" + "=" * 80 + "\n")
        print(out.result)
        if out.grounding_points:
            print("\nNeeds grounding: " + "; ".join(out.grounding_points))
        return
    print("\n" + "=" * 80 + "\nRUN STOPPED\n" + "=" * 80 + "\n")
    print(f"Reason: {out.reason}")
    if out.result:
        print("\nLast partial result:\n" + out.result)


def main(argv=None) -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "WARNING"))
    sub = ap.add_subparsers(dest="cmd", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--work-dir", default=os.getenv("WORK_DIR"), help="Directory for trace.jsonl (optional)")
    common.add_argument("--model-base-url", default=os.getenv("MODEL_BASE_URL", "http://127.0.0.1:8080"))   # e.g. http://127.0.0.1:8080[/v1]
    common.add_argument("--model-name", default=os.getenv("MODEL_NAME", ""))
    common.add_argument("--bing-api-key", default=os.getenv("BING_API_KEY"))
    common.add_argument("--temperature", type=float, default=0.2)
    common.add_argument("--on-step-error", choices=["abort", "skip"], default="abort")
    common.add_argument("--keep-iterating", action="store_true", help="Use all code iterations even after the judge accepts")
    common.add_argument("--summarize-every", type=int, default=0, help="Compress code attempts every N iterations (0 = off)")
    common.add_argument("--grounding-check", action="store_true")
    common.add_argument("--route-intrinsic", action="store_true", help="Route steps through the prompt that offers use_intrinsic_knowledge")
    common.add_argument("--sandbox-network", action="store_true", help="Give the Python sandbox network access")

    ap_run = sub.add_parser("run", parents=[common], help="Run one task and exit")
    ap_run.add_argument("--task", required=True)
    sub.add_parser("chat", parents=[common], help="Interactive mode; type 'stop' to quit")

    args = ap.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s %(message)s")

    def _run(task: str):
        return run_agent(
            task=task,
            model_base_url=args.model_base_url,
            model_name=args.model_name,
            bing_api_key=args.bing_api_key,
            temperature=args.temperature,
            work_dir=args.work_dir,
            on_step_error=args.on_step_error,
            stop_on_accept=not args.keep_iterating,
            summarize_every=args.summarize_every,
            check_grounding=args.grounding_check,
            route_intrinsic=args.route_intrinsic,
            sandbox_network=args.sandbox_network,
        )

    if args.cmd == "run":
        out = _run(args.task)
        print_outcome(out)
        return 0 if out.ok else 1

    print("Running in interactive mode. End a line with '\\' for multi-line input; type 'stop' to quit.")
    while True:
        print("\n[You]: ")
        task = read_input()
        if task is None or task.strip() == "stop":
            return 0
        if not task.strip():
            continue
        print("\n[Bot]:")
        print_outcome(_run(task.strip()))


if __name__ == "__main__":
    sys.exit(main())
