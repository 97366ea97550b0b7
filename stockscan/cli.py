"""CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

from .camera import ScanCamera
from .config import load_config
from .db import ProductStore
from .errors import StockscanError
from .merge import INSERT
from .models import KNOWN_STATUSES, STATUS_FILTER_ALL, Product
from .service import InventoryService
from .views import expiry_badge, format_date


def main(argv: list[str] | None = None) -> None:
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="stockscan",
        description="QR inventory tracker: scan products, track expiry, get insights",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="config file path (TOML)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="log progress messages"
    )

    sub = parser.add_subparsers(dest="command")

    # cameras
    sub.add_parser("cameras", help="list available cameras")

    # scan
    scan_parser = sub.add_parser("scan", help="scan a product QR code")
    source = scan_parser.add_mutually_exclusive_group()
    source.add_argument("--image", type=str, help="decode an existing image file")
    source.add_argument("--text", type=str, help="use an already decoded payload")
    scan_parser.add_argument(
        "--quantity", "-n", type=int, default=1, help="units to add (default 1)"
    )
    scan_parser.add_argument(
        "--save", action="store_true", help="keep the captured camera frame as a JPEG"
    )
    scan_parser.add_argument("--json", action="store_true", help="JSON output")

    # add
    add_parser = sub.add_parser("add", help="add a product by hand")
    add_parser.add_argument("name", type=str)
    add_parser.add_argument("--expiry", type=str, required=True, help="YYYY-MM-DD")
    add_parser.add_argument("--quantity", "-n", type=int, default=1)
    add_parser.add_argument("--manufactured", type=str, default=None)
    add_parser.add_argument("--ingredient", type=str, default=None)
    add_parser.add_argument("--note", type=str, default=None)

    # list
    list_parser = sub.add_parser("list", help="show the inventory")
    list_parser.add_argument("--search", "-s", type=str, default="")
    list_parser.add_argument(
        "--status",
        type=str,
        default=STATUS_FILTER_ALL,
        choices=(STATUS_FILTER_ALL, *KNOWN_STATUSES),
    )
    list_parser.add_argument("--json", action="store_true", help="JSON output")

    # status
    status_parser = sub.add_parser("status", help="change a product's status")
    status_parser.add_argument("product_id", type=str)
    status_parser.add_argument("status", type=str)

    # sweep / expiring / insights / serve
    sub.add_parser("sweep", help="mark products past their expiry date as expired")
    sub.add_parser("expiring", help="list products expiring soon")
    insights_parser = sub.add_parser("insights", help="AI inventory insights")
    insights_parser.add_argument("--json", action="store_true", help="JSON output")
    sub.add_parser("serve", help="run the scheduled expiry sweep")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)

    try:
        match args.command:
            case "cameras":
                _cmd_cameras()
            case "scan":
                asyncio.run(_cmd_scan(config, args))
            case "add":
                asyncio.run(_cmd_add(config, args))
            case "list":
                asyncio.run(_cmd_list(config, args))
            case "status":
                asyncio.run(_cmd_status(config, args))
            case "sweep":
                asyncio.run(_cmd_sweep(config, args))
            case "expiring":
                asyncio.run(_cmd_expiring(config, args))
            case "insights":
                asyncio.run(_cmd_insights(config, args))
            case "serve":
                asyncio.run(_cmd_serve(config, args))
    except (StockscanError, ValueError, RuntimeError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


def _build_service(config, *, with_insights: bool = False) -> tuple[ProductStore, InventoryService]:
    store = ProductStore(config.database.path)
    backend = None
    if with_insights:
        from .insights import create_backend

        backend = create_backend(config)

    service = InventoryService(
        store,
        config.user.id,
        insight_backend=backend,
        camera=ScanCamera(
            camera_index=config.scanner.camera_index,
            save_dir=config.scanner.save_dir,
        ),
        soon_days=config.lifecycle.expiring_soon_days,
        on_expiring_soon=_alert_expiring,
    )
    return store, service


async def _finish(store: ProductStore, service: InventoryService) -> None:
    await service.stop()
    task = service.last_expiry_write
    if task is not None:
        await task.wait()
    store.close()


def _alert_expiring(products: list[Product]) -> None:
    print("⏰ Expiring soon:", file=sys.stderr)
    for p in products:
        print(f"   {p.product_name} ({format_date(p.expiry_date)})", file=sys.stderr)


def _product_dict(p: Product) -> dict:
    return {"id": p.id, **p.to_record()}


def _print_products(products) -> None:
    for p in products:
        badge = expiry_badge(p)
        badge_text = f"  [{badge.label}]" if badge else ""
        print(
            f"  {p.product_name:<24} x{p.quantity:<4} {p.status:<8} "
            f"{format_date(p.expiry_date):<13}{badge_text}  ({p.id})"
        )


def _cmd_cameras() -> None:
    cameras = ScanCamera.list_cameras()
    if not cameras:
        print("No cameras found.")
        return
    print(f"Available cameras: {len(cameras)}")
    for idx in cameras:
        print(f"  camera {idx}")


async def _cmd_scan(config, args) -> None:
    store, service = _build_service(config)
    try:
        await service.start()
        if args.text:
            result = await service.scan_text(args.text, args.quantity)
        elif args.image:
            print("🔍 Decoding QR code...")
            result = await service.scan_image(args.image, args.quantity)
        else:
            print("📷 Capturing...")
            if args.save:
                print(f"💾 Saving frame to {config.scanner.save_dir}")
            result = await service.scan_camera(args.quantity, save=args.save)
    finally:
        await _finish(store, service)

    if args.json:
        data = {
            "action": result.kind,
            "product": _product_dict(result.product),
            "fields": result.fields,
        }
        print(json.dumps(data, ensure_ascii=False, indent=2))
    elif result.kind == INSERT:
        print(f"📦 Added {result.product.product_name} (quantity {result.product.quantity})")
    else:
        print(
            f"📦 Updated {result.product.product_name}: "
            f"quantity {result.fields['quantity']}"
        )


async def _cmd_add(config, args) -> None:
    store, service = _build_service(config)
    try:
        await service.start()
        product = await service.add_manual(
            args.name,
            args.quantity,
            args.expiry,
            manufacture_date=args.manufactured,
            ingredient=args.ingredient,
            note=args.note,
        )
    finally:
        await _finish(store, service)
    print(f"📦 Added {product.product_name} ({product.id})")


async def _cmd_list(config, args) -> None:
    store, service = _build_service(config)
    try:
        await service.start()
        products = service.view(args.search, args.status)
    finally:
        await _finish(store, service)

    if args.json:
        print(json.dumps([_product_dict(p) for p in products], ensure_ascii=False, indent=2))
        return
    if not products:
        print("No products found.")
        return
    print(f"Products ({len(products)}):")
    _print_products(products)


async def _cmd_status(config, args) -> None:
    store, service = _build_service(config)
    try:
        await service.start()
        try:
            product = service.set_status(args.product_id, args.status)
        except KeyError:
            raise ValueError(f"Product not found: {args.product_id}") from None
        await service.save_changes()
    finally:
        await _finish(store, service)
    print(f"✅ {product.product_name}: {product.status}")


async def _cmd_sweep(config, args) -> None:
    store, service = _build_service(config)
    try:
        # Starting applies the sweep to the first snapshot
        await service.start()
        task = service.last_expiry_write
        if task is not None:
            count = await task
            print(f"✅ {count} product(s) were marked as expired.")
        else:
            print("No products needed updating.")
    finally:
        await _finish(store, service)


async def _cmd_expiring(config, args) -> None:
    store, service = _build_service(config)
    try:
        await service.start()
        products = service.expiring_soon()
    finally:
        await _finish(store, service)

    if not products:
        print("No products are expiring soon.")
        return
    _print_products(products)


async def _cmd_insights(config, args) -> None:
    store, service = _build_service(config, with_insights=True)
    try:
        await service.start()
        print("✨ Generating insights...", file=sys.stderr)
        insights = await service.insights()
    finally:
        await _finish(store, service)

    if args.json:
        data = [
            {
                "title": i.title,
                "variant": i.variant,
                "items": i.items,
                "summary": i.summary,
            }
            for i in insights
        ]
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return
    if not insights:
        print("No insights were returned.")
        return
    for insight in insights:
        print(f"\n## {insight.title}")
        if insight.summary is not None:
            print(insight.summary)
        elif insight.has_items:
            for item in insight.items:
                print(f"  - {item}")
        else:
            print("  (none)")


async def _cmd_serve(config, args) -> None:
    from .scheduler import ExpirySweepScheduler

    store, service = _build_service(config)
    scheduler = ExpirySweepScheduler(config, service)
    try:
        await service.start()
        scheduler.start()
        print(f"⏱  Expiry sweep scheduled: {config.lifecycle.sweep_schedule}")
        await asyncio.Event().wait()
    finally:
        scheduler.stop()
        await _finish(store, service)
