#!/usr/bin/env python3
"""
campusnav - Live walking navigation across campus with voice guidance

Usage:
    python -m campusnav DEST_LAT DEST_LON [options]

Options:
    --playback FILE   Replay a recorded GPS trace instead of live GPS
    --speed FACTOR    Playback speed multiplier (default: 1.0)
    --simulate        Walk the planned route virtually (requires --lat/--lon)
    --lat LAT         Starting latitude for --simulate
    --lon LON         Starting longitude for --simulate
    --record FILE     Record the live GPS trace to a JSON file
    --browser         Take positions from a phone browser instead of termux
    --ws-port PORT    WebSocket port for --browser (default: 8765)
    --ors-key KEY     OpenRouteService API key (default: $ORS_API_KEY)
    --log FILE        Append log lines to FILE
    --no-voice        Disable spoken instructions
    --language TAG    Voice language (default: en-US)
    --rate R          Speech rate, 1.0 = normal
    --pitch P         Speech pitch, 1.0 = normal
    --volume V        Speech volume, 0.0-1.0
    --list-voices     List available voices and exit
    --test-voice      Speak a test message and exit
"""

import argparse
import os
import sys

from .app import CampusNavigator
from .audio import default_speech
from .browser_gps import BrowserGPS
from .config import CONFIG
from .gps import GPSPlayback, GPSRecorder, TermuxGPS
from .models import LatLng, VoiceSettings
from .routing import WalkingRouteProvider
from .voice import VoiceAnnouncer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="campusnav",
        description="Live walking navigation across campus with voice guidance",
    )
    parser.add_argument("dest_lat", type=float, nargs="?", help="Destination latitude")
    parser.add_argument("dest_lon", type=float, nargs="?", help="Destination longitude")
    parser.add_argument("--playback", metavar="FILE", help="Replay a recorded GPS trace")
    parser.add_argument("--speed", type=float, default=1.0, help="Playback speed multiplier")
    parser.add_argument("--simulate", action="store_true", help="Walk the planned route virtually")
    parser.add_argument("--lat", type=float, help="Starting latitude for --simulate")
    parser.add_argument("--lon", type=float, help="Starting longitude for --simulate")
    parser.add_argument("--record", metavar="FILE", help="Record the live GPS trace")
    parser.add_argument("--browser", action="store_true", help="Take positions from a browser page")
    parser.add_argument("--ws-port", type=int, default=CONFIG["browser_ws_port"],
                        help="WebSocket port for --browser")
    parser.add_argument("--ors-key", default=os.environ.get("ORS_API_KEY"),
                        help="OpenRouteService API key")
    parser.add_argument("--log", metavar="FILE", help="Append log lines to FILE")
    parser.add_argument("--no-voice", action="store_true", help="Disable spoken instructions")
    parser.add_argument("--language", default="en-US", help="Voice language tag")
    parser.add_argument("--rate", type=float, default=1.0, help="Speech rate")
    parser.add_argument("--pitch", type=float, default=1.0, help="Speech pitch")
    parser.add_argument("--volume", type=float, default=0.8, help="Speech volume")
    parser.add_argument("--list-voices", action="store_true", help="List voices and exit")
    parser.add_argument("--test-voice", action="store_true", help="Speak a test message and exit")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    speech = None if args.no_voice else default_speech()
    announcer = VoiceAnnouncer(speech)
    announcer.update_voice_settings(
        enabled=not args.no_voice,
        language=args.language,
        rate=args.rate,
        pitch=args.pitch,
        volume=args.volume,
    )
    voice_settings = announcer.get_voice_settings()

    if args.list_voices:
        voices = announcer.get_available_voices()
        if not voices:
            print("No voices available")
        for voice in voices:
            print(f"{voice.id:<16} {voice.name:<24} {', '.join(voice.languages)}")
        return

    if args.test_voice:
        announcer.test_voice()
        return

    if args.dest_lat is None or args.dest_lon is None:
        parser.error("destination DEST_LAT DEST_LON is required")

    destination = LatLng(args.dest_lat, args.dest_lon)
    route_provider = WalkingRouteProvider(api_key=args.ors_key)
    route = None
    announcement_callback = None

    if args.simulate:
        if args.lat is None or args.lon is None:
            parser.error("--simulate requires --lat and --lon")
        route = route_provider.fetch_walking_route(LatLng(args.lat, args.lon), destination)
        positioning = GPSPlayback.from_route(route, speed=args.speed)
    elif args.playback:
        positioning = GPSPlayback.from_file(args.playback, speed=args.speed)
    elif args.browser:
        positioning = BrowserGPS(ws_port=args.ws_port)
        positioning.start()
        announcement_callback = positioning.send_announcement
    else:
        positioning = TermuxGPS()
        if not positioning.is_supported():
            print("termux-location not found; use --browser, --playback or --simulate")
            sys.exit(1)

    if args.record:
        if isinstance(positioning, GPSPlayback):
            parser.error("--record cannot be combined with --playback or --simulate")
        positioning = GPSRecorder(positioning, args.record)

    navigator = CampusNavigator(
        positioning,
        route_provider,
        speech=speech,
        voice_settings=voice_settings,
        log_path=args.log,
        announcement_callback=announcement_callback,
    )
    try:
        navigator.run(destination, route=route)
    finally:
        if isinstance(positioning, BrowserGPS):
            positioning.stop()
        elif isinstance(positioning, GPSRecorder) and isinstance(positioning.source, BrowserGPS):
            positioning.source.stop()


if __name__ == "__main__":
    main()
