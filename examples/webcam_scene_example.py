#!/usr/bin/env python3
"""Webcam scene recognition with colour fingerprints.

Builds a gallery of scene fingerprints from snapshots and shows the
closest match for the live frame in real time.

Press 's' to snapshot the current frame into the gallery.
Press 'c' to clear the gallery.
Press 'q' to quit.

Requirements: opencv-python, a webcam
"""

import argparse
import time

import cv2

from photoprint import FingerprintGallery, fingerprint_with_fallback
from _common import WebcamLoop, add_device_args, draw_text, frame_to_pixels, open_kernel


def parse_args():
    parser = argparse.ArgumentParser(
        description="photoprint: webcam scene recognition")
    parser.add_argument("--camera", type=int, default=0,
                        help="Camera device index (default: 0)")
    parser.add_argument("--top-k", type=int, default=3,
                        help="Number of results to show (default: 3)")
    parser.add_argument("--max-gallery", type=int, default=10,
                        help="Max gallery items (default: 10)")
    add_device_args(parser)
    return parser.parse_args()


def main():
    args = parse_args()
    loop = WebcamLoop(args.camera)
    device, kernel = open_kernel(args)
    gallery = FingerprintGallery()
    thumbnails = {}

    try:
        for frame in loop:
            t0 = time.perf_counter()
            pixels, w, h = frame_to_pixels(frame)
            query = fingerprint_with_fallback(pixels, w, h, kernel)
            latency_ms = (time.perf_counter() - t0) * 1000

            if len(gallery) > 0:
                results = gallery.query(query, top_k=args.top_k)
                for i, (label, score) in enumerate(results):
                    y_off = 100 + i * 60
                    thumb = thumbnails[label]
                    if y_off + 48 < h and 74 < w:
                        frame[y_off:y_off + 48, 10:74] = thumb
                    draw_text(frame, f"#{i+1} {label}: {score:.3f}", (80, y_off + 25))
                loop.print_metrics({"gallery": len(gallery), "top1": results[0][1]},
                                   latency_ms)
            else:
                draw_text(frame, "Press 's' to add scene to gallery", (10, 30))
                loop.print_metrics({"gallery": 0}, latency_ms)

            draw_text(frame, "'s'=snapshot  'c'=clear  'q'=quit", (10, h - 20))
            key = loop.show(frame)

            if key == ord("s") and len(gallery) < args.max_gallery:
                label = f"scene_{len(gallery)}"
                gallery.add(label, query)
                thumbnails[label] = cv2.resize(frame, (64, 48))
                print(f"\nAdded '{label}' ({len(gallery)}/{args.max_gallery})")
            elif key == ord("c"):
                gallery.clear()
                thumbnails.clear()
                print("\nGallery cleared")
    finally:
        loop.cleanup()
        if device is not None:
            device.close()


if __name__ == "__main__":
    main()
