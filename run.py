#!/usr/bin/env python3
"""
Squat rep counter and coach: live (webcam) or replay (video file).
Usage:
  Live:   python run.py --live [--camera 0]
  Replay: python run.py --video path/to/video.mp4
"""
from __future__ import annotations

import argparse
import dataclasses
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from squatcoach.config import CoachConfig, SmootherConfig
from squatcoach.io_stream import video_frames
from squatcoach.live import run_live_pipeline
from squatcoach.pose import VideoClock, create_pose_detector, process_frame
from squatcoach.session import SquatSession

logger = logging.getLogger("squatcoach.run")


def run_replay(video_path: str, config: CoachConfig, smoother_config: SmootherConfig) -> SquatSession:
    """Push every frame of a video through one session; returns the finished session."""
    pose = create_pose_detector()
    clock = VideoClock()
    session = SquatSession(config, smoother_config)
    for frame_bgr, frame_idx, ts in video_frames(video_path):
        keypoints = process_frame(frame_bgr, pose, ts, clock)
        session.process(keypoints, ts)
    return session


def build_config(args: argparse.Namespace) -> CoachConfig:
    overrides = {
        "rep_depth_threshold": args.rep_depth,
        "coach_depth_threshold": args.coach_depth,
        "trunk_delta_threshold_deg": args.trunk_delta,
        "calibration_frames": args.calib_frames,
        "min_transition_sec": args.min_transition,
    }
    if args.adaptive:
        overrides["adaptive_coach_depth"] = True
    base = CoachConfig.from_env()
    return dataclasses.replace(base, **{k: v for k, v in overrides.items() if v is not None})


def main() -> None:
    load_dotenv()
    load_dotenv(Path(__file__).resolve().parent / ".env")

    ap = argparse.ArgumentParser(description="Squat rep counter with coaching cues")
    ap.add_argument("--video", type=str, default=None, help="Path to video file (replay mode)")
    ap.add_argument("--live", action="store_true", help="Use live webcam")
    ap.add_argument("--camera", type=int, default=0, help="Camera device id (default 0)")
    ap.add_argument("--num-cameras", type=int, default=2, help="Cameras cycled by the 'c' key")
    ap.add_argument("--no-speech", action="store_true", help="Show cues on screen only")
    ap.add_argument("--output-dir", type=str, default="outputs", help="Directory for snapshots")
    ap.add_argument("--rep-depth", type=float, default=None, help="Depth fraction needed to count a rep")
    ap.add_argument("--coach-depth", type=float, default=None, help="Depth fraction the coach approves")
    ap.add_argument("--trunk-delta", type=float, default=None, help="Trunk lean over baseline (deg) for 'Chest up'")
    ap.add_argument("--calib-frames", type=int, default=None, help="Still frames needed to calibrate")
    ap.add_argument("--min-transition", type=float, default=None, help="Min seconds between FSM transitions")
    ap.add_argument("--adaptive", action="store_true", help="Learn coaching depth from the first two reps")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log phase transitions")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.live and args.video:
        print("Error: provide exactly one of --video or --live", file=sys.stderr)
        sys.exit(1)
    if not args.live and not args.video:
        print("Error: provide --video PATH or --live", file=sys.stderr)
        sys.exit(1)

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    smoother_config = SmootherConfig.from_env()

    if args.live:
        run_live_pipeline(
            camera_id=args.camera,
            num_cameras=args.num_cameras,
            config=config,
            smoother_config=smoother_config,
            speak=not args.no_speech,
            output_dir=args.output_dir,
        )
        return

    if not os.path.isfile(args.video):
        print(f"Error: video file not found: {args.video}", file=sys.stderr)
        sys.exit(1)
    session = run_replay(args.video, config, smoother_config)
    for t, cue in session.cue_history:
        print(f"  {t:7.2f}s  {cue.message}")
    print(f"Replay done. Reps: {session.rep_count}. Calibrated: {session.calibrated}.")


if __name__ == "__main__":
    main()
