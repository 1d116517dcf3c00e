"""CLI entrypoint for the studio API server and local provider tools."""

from __future__ import annotations

import argparse
import json

from rich.table import Table

from config import get_settings
from utils.logger import configure_logging, console, get_logger
from video import configured_providers, get_active_providers, score_providers


def _channels(text: str):
    return [item.strip().upper() for item in str(text or "").split(",") if item.strip()]


def _providers_table() -> Table:
    configured = {item.id for item in configured_providers()}
    table = Table(title="Video providers")
    table.add_column("id")
    table.add_column("name")
    table.add_column("category")
    table.add_column("$/s", justify="right")
    table.add_column("duration")
    table.add_column("quality", justify="right")
    table.add_column("speed", justify="right")
    table.add_column("configured")
    for provider in get_active_providers():
        table.add_row(
            provider.id,
            provider.name,
            provider.category,
            f"{provider.cost_per_second:.2f}",
            f"{provider.min_duration_seconds}-{provider.max_duration_seconds}s",
            str(provider.quality_score),
            str(provider.latency_score),
            "yes" if provider.id in configured else "no",
        )
    return table


def _recommend_table(result) -> Table:
    table = Table(title="Provider ranking")
    table.add_column("#", justify="right")
    table.add_column("provider")
    table.add_column("score", justify="right")
    table.add_column("cost", justify="right")
    table.add_column("test", justify="right")
    table.add_column("note")
    for rank, item in enumerate(result.ranking, start=1):
        note = item.disqualify_reason if item.disqualified else item.reason
        table.add_row(
            str(rank),
            item.provider.name,
            str(item.total_score),
            f"${item.estimated_cost:.2f}",
            f"${item.test_render_cost:.2f}",
            note or "",
        )
    return table


def main() -> None:
    parser = argparse.ArgumentParser(description="Mia creative studio CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")

    providers = sub.add_parser("providers")
    providers.add_argument("--json", action="store_true")

    rec = sub.add_parser("recommend")
    rec.add_argument("--goal", default="awareness")
    rec.add_argument("--channels", default="")
    rec.add_argument("--budget", default="$5-$25", choices=["$0-$5", "$5-$25", "$25-$100", "unlimited"])
    rec.add_argument("--tier", default="balanced", choices=["fast", "balanced", "premium"])
    rec.add_argument("--duration", type=int, default=10)
    rec.add_argument("--json", action="store_true")

    args = parser.parse_args()
    settings = get_settings()
    configure_logging(
        level=settings.logging.level,
        log_file=settings.logging.log_file,
        use_rich=settings.logging.use_rich,
    )

    if args.command == "serve":
        import uvicorn

        get_logger().info("serve host=%s port=%s reload=%s", args.host, args.port, bool(args.reload))
        uvicorn.run("webapp.app:app", host=args.host, port=int(args.port), reload=bool(args.reload))
        return

    if args.command == "providers":
        if args.json:
            payload = [item.model_dump(mode="json") for item in get_active_providers()]
            print(json.dumps({"providers": payload}, ensure_ascii=False))
            return
        console.print(_providers_table())
        return

    if args.command == "recommend":
        result = score_providers(
            goal=args.goal,
            channels=_channels(args.channels),
            budget_band=args.budget,
            quality_tier=args.tier,
            duration_seconds=max(1, int(args.duration)),
        )
        if args.json:
            print(json.dumps(result.model_dump(mode="json"), ensure_ascii=False))
            return
        console.print(_recommend_table(result))
        if result.recommended is not None:
            suffix = " (nothing fits the budget, closest option)" if result.fallback_used else ""
            console.print(f"Recommended: [bold]{result.recommended.provider.name}[/bold]{suffix}")


if __name__ == "__main__":
    main()
