import argparse
import logging

from rknn_kit import PostProcessConfig, RecordedEngine, load_postprocess_config, run_engine


def main() -> int:
    parser = argparse.ArgumentParser(description="Post-process a captured inference (.npz) and print detections.")
    parser.add_argument("capture", help="Path to a capture written by RecordedEngine.save_npz.")
    parser.add_argument("--config", default=None, help="Optional post-process config JSON.")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold (overrides --config).")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS (overrides --config).")
    parser.add_argument("--input-height", type=int, default=None, help="Model input height; defaults to input 0's H.")
    parser.add_argument("--verbose", action="store_true", help="Log per-branch candidate counts.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(name)s: %(message)s")

    cfg = load_postprocess_config(args.config) if args.config else PostProcessConfig()
    cfg = PostProcessConfig(
        conf_threshold=cfg.conf_threshold if args.conf is None else args.conf,
        iou_threshold=cfg.iou_threshold if args.iou is None else args.iou,
        max_detections=cfg.max_detections,
    )

    engine = RecordedEngine.from_npz(args.capture)
    detections = run_engine(engine, cfg, input_height=args.input_height)
    for det in detections:
        print(det.class_id, f"{det.confidence:.3f}", det.box)
    print(f"detections={len(detections)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
