# main.py
# Entry point: drives navigation sessions from the command line.
#
#   northstar demo [--voice]                  sample Chicago -> Detroit trip over synthetic GPS fixes
#   northstar drive [token] [--driver ID]     load a stored (or the last active) route, then type "gps <lat> <lon>"
#   northstar plan <name> <pickup> <delivery> create a route as a dispatcher

import argparse
import logging
import sys
import time
from typing import List, Optional, Tuple

import numpy as np

from .dispatcher import Dispatcher, TruckRestrictionError
from .navigation.formatting import format_distance, format_duration, format_eta
from .navigation.models import Coord, PositionSample, ProgressView, RoutePlan, TripStatus, TruckSpecs, TurnStep
from .navigation.nav_config import NavConfig
from .navigation.nav_logger import NavLogger
from .navigation.navigator import NavigationSession, consume
from .services.geocoder import GeocodingError
from .services.osrm_client import RoutingError
from .services.persistence import PersistenceClient, PersistenceError, LocalRouteStore
from .services.reporter import ActivityReporter
from .services.truck_validator import TruckRouteValidator
from .tts.tts import VoiceAnnouncer

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Demo route (Chicago -> Detroit)
# ------------------------------------------------------------------
DEMO_WAYPOINTS = [
    Coord(41.8781, -87.6298),   # Chicago
    Coord(42.0, -85.0),
    Coord(42.3314, -83.0458),   # Detroit
]

DEMO_DIRECTIONS = [
    TurnStep("Head east on Washington St", 0.5),
    TurnStep("Turn right onto Michigan Ave", 1.2),
    TurnStep("Continue onto I-94 E", 50.0),
    TurnStep("Take exit 194 for I-69 N", 0.3),
    TurnStep("Merge onto I-69 N", 25.7),
    TurnStep("Take exit 33 toward Detroit", 0.5),
    TurnStep("Turn left onto Elm St", 0.2),
]


def demo_plan(points_per_leg: int = 20) -> RoutePlan:
    polyline: List[Coord] = []
    for a, b in zip(DEMO_WAYPOINTS, DEMO_WAYPOINTS[1:]):
        lats = np.linspace(a.lat, b.lat, points_per_leg, endpoint=False)
        lons = np.linspace(a.lon, b.lon, points_per_leg, endpoint=False)
        polyline.extend(Coord(float(lat), float(lon)) for lat, lon in zip(lats, lons))
    polyline.append(DEMO_WAYPOINTS[-1])
    return RoutePlan(polyline, DEMO_DIRECTIONS, total_distance_m=453580, total_duration_s=16200)


def demo_fixes(plan: RoutePlan, every: int = 4) -> List[PositionSample]:
    fixes = [PositionSample(p.lat, p.lon, accuracy=10, speed=60) for p in plan.polyline[::every]]
    # one fix well north of the road to show the off-route banner
    detour = plan.polyline[len(plan.polyline) // 2]
    fixes.insert(len(fixes) // 2, PositionSample(detour.lat + 0.05, detour.lon))
    fixes.append(PositionSample(plan.polyline[-1].lat, plan.polyline[-1].lon))
    return fixes


class PrintVoice:
    """Voice sink that prints instead of speaking."""

    def announce(self, announcement) -> bool:
        tag = "TTS!" if announcement.is_urgent else "TTS"
        print(f"  [{tag}] {announcement.text}")
        return True


def describe(view: ProgressView) -> str:
    banner = "  OFF ROUTE" if view.off_route else ""
    instruction = view.current_instruction or "-"
    to_turn = "" if view.distance_to_next_turn_miles is None else f" (in {view.distance_to_next_turn_miles} miles)"
    return (
        f"{view.progress_percent:3d}%  {format_distance(view.remaining_distance_m)} left, "
        f"ETA {format_eta(view.eta)}  | {instruction}{to_turn}{banner}"
    )


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------

def run_demo(config: NavConfig, voice_on: bool, delay: float) -> int:
    plan = demo_plan()
    voice = VoiceAnnouncer(config) if voice_on else PrintVoice()
    session = NavigationSession(plan, config, voice=voice)

    success, msg = session.start()
    print(f"[Nav] {msg}")
    if not success:
        return 1

    print("\n--- GPS Loop Active ---")
    for view in consume(session, demo_fixes(plan)):
        print(describe(view))
        # Simulate GPS poll interval
        time.sleep(delay)

    print("\n--- Session complete ---")
    print(f"    Log files written to: {config.log_dir}/")
    if isinstance(voice, VoiceAnnouncer):
        voice.close()
    return 0


def parse_floats(parts, count: int):
    if len(parts) != count:
        raise ValueError(f"expected {count} numbers, got {len(parts)}")
    return [float(x) for x in parts]


def load_drive_route(config: NavConfig, token: Optional[str], api: PersistenceClient,
                     store: LocalRouteStore) -> Optional[Tuple[str, RoutePlan, Optional[str], Optional[int]]]:
    """(name, plan, token, driver_id) for a stored route, or the last active route when no token is given."""
    if token is None:
        saved = NavLogger(config).load_route()
        if saved is None:
            print(f"[ERR] No active route to resume in {config.route_filepath}")
            return None
        plan, saved_token = saved
        return "Resumed route", plan, saved_token, None

    dispatcher = Dispatcher(config, api=api, store=store)
    try:
        record = dispatcher.load_route(token)
    except (PersistenceError, ValueError) as e:
        print(f"[ERR] {e}")
        return None
    return record.name, record.plan, record.token, record.driver_id


def run_drive(config: NavConfig, token: Optional[str], driver_id: Optional[int], voice_on: bool) -> int:
    api = PersistenceClient(config)
    store = LocalRouteStore(config)
    loaded = load_drive_route(config, token, api, store)
    if loaded is None:
        return 1
    name, plan, route_token, assigned_driver = loaded

    voice = VoiceAnnouncer(config) if voice_on else PrintVoice()
    reporter = ActivityReporter(api)
    session = NavigationSession(
        plan, config,
        voice=voice,
        reporter=reporter,
        route_token=route_token,
        driver_id=driver_id or assigned_driver,
        persistence=api,
        local_store=store,
    )
    success, msg = session.start()
    print(f"[Nav] {name}: {msg}")
    if not success:
        return 1

    print("Commands:")
    print("  gps <lat> <lon>")
    print("  status <pending|in_progress|loading|unloading|completed>")
    print("  voice")
    print("  quit")

    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        parts = line.split()
        cmd, args = parts[0].lower(), parts[1:]
        if cmd in ("q", "quit", "exit"):
            break
        try:
            if cmd == "gps":
                lat, lon = parse_floats(args, 2)
                view = session.update(PositionSample(lat, lon))
                print("[NAV]", describe(view) if view else "sample ignored")
            elif cmd == "status" and args:
                ok, status_msg = session.set_status(TripStatus(args[0]))
                print("[NAV]", status_msg)
            elif cmd == "voice" and isinstance(voice, VoiceAnnouncer):
                print("[NAV] voice", "on" if voice.toggle() else "off")
            else:
                print("[NAV] Unknown command.")
        except ValueError as e:
            print("[ERR]", e)
        if not session.is_active:
            break

    reporter.flush()
    reporter.close()
    if isinstance(voice, VoiceAnnouncer):
        voice.close()
    return 0


def run_plan(config: NavConfig, args) -> int:
    validator = TruckRouteValidator(config) if config.ors_api_key else None
    dispatcher = Dispatcher(config, validator=validator)
    truck = TruckSpecs(args.height, args.weight)
    try:
        record = dispatcher.create_route(
            args.name, args.pickup, args.delivery,
            truck=truck, notes=args.notes, driver_id=args.driver,
            allow_restricted=args.force,
        )
    except TruckRestrictionError as e:
        print(f"[WARN] {e} Use --force to create it anyway.")
        return 2
    except (ValueError, GeocodingError, RoutingError) as e:
        print(f"[ERR] Error creating route: {e}")
        return 1

    print(f"Route '{record.name}' ({record.token})")
    print(f"  {format_distance(record.plan.total_distance_m)}, {format_duration(record.plan.total_duration_s)}")
    if record.truck_safe:
        print(f"  Truck-safe for {truck.height_ft}' height, {truck.weight_lbs:.0f} lbs")
    print(f"  Driver link: {dispatcher.share_link(record.token)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="northstar", description="Truck route planning and navigation")
    parser.add_argument("-v", "--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    demo = sub.add_parser("demo", help="run the sample Chicago -> Detroit trip")
    demo.add_argument("--voice", action="store_true", help="speak announcements")
    demo.add_argument("--delay", type=float, default=0.05)

    drive = sub.add_parser("drive", help="navigate a stored route")
    drive.add_argument("token", nargs="?", default=None, help="share token; omit to resume the last active route")
    drive.add_argument("--driver", type=int, default=None)
    drive.add_argument("--voice", action="store_true")

    plan = sub.add_parser("plan", help="create a route")
    plan.add_argument("name")
    plan.add_argument("pickup")
    plan.add_argument("delivery")
    plan.add_argument("--height", type=float, default=13.6, help="truck height (ft)")
    plan.add_argument("--weight", type=float, default=80000, help="truck weight (lbs)")
    plan.add_argument("--notes", default="")
    plan.add_argument("--driver", type=int, default=None)
    plan.add_argument("--force", action="store_true", help="create even if truck-restricted")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # ------------------------------------------------------------------
    # Logging setup, configured once here; all modules inherit
    # ------------------------------------------------------------------
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    config = NavConfig.from_env()

    if args.command == "demo":
        return run_demo(config, args.voice, args.delay)
    if args.command == "drive":
        return run_drive(config, args.token, args.driver, args.voice)
    return run_plan(config, args)


if __name__ == "__main__":
    sys.exit(main())
