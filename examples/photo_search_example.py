#!/usr/bin/env python3
"""Photo search example: find near-duplicates of an image in a folder.

Fingerprints every image under ``--gallery`` and ranks them against the
query image by cosine similarity.  With ``--device host`` or
``--device cuda`` the fingerprints come from the compute kernel; if its
pipeline cannot be built the CPU path is used instead.

Usage::

    python photo_search_example.py query.jpg --gallery ~/Pictures --top-k 5
    python photo_search_example.py query.jpg --gallery ~/Pictures --device cuda

Requirements: Pillow (numba with a CUDA GPU for --device cuda)
"""

import argparse
import pathlib
import time

from photoprint import FingerprintGallery, fingerprint_with_fallback, load_pixels, mean_hsb
from _common import add_device_args, open_kernel

IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".bmp", ".gif", ".tif", ".tiff", ".webp"}


def parse_args():
    parser = argparse.ArgumentParser(
        description="photoprint: rank a folder of images by similarity to a query")
    parser.add_argument("query", type=pathlib.Path, help="Query image")
    parser.add_argument("--gallery", type=pathlib.Path, required=True,
                        help="Folder of images to search (recursive)")
    parser.add_argument("--top-k", type=int, default=5,
                        help="Number of results to print (default: 5)")
    parser.add_argument("--threshold", type=float, default=None,
                        help="Print every image scoring at least this instead of top-k")
    add_device_args(parser)
    return parser.parse_args()


def fingerprint_file(path, kernel):
    buf = load_pixels(path)
    return fingerprint_with_fallback(buf.pixels, buf.width, buf.height, kernel), buf


def main():
    args = parse_args()
    paths = sorted(p for p in args.gallery.rglob("*")
                   if p.suffix.lower() in IMAGE_SUFFIXES)
    if not paths:
        raise SystemExit(f"No images found under {args.gallery}")

    device, kernel = open_kernel(args)
    try:
        gallery = FingerprintGallery()
        t0 = time.perf_counter()
        for path in paths:
            fp, _ = fingerprint_file(path, kernel)
            gallery.add(str(path), fp)
        build_s = time.perf_counter() - t0
        print(f"Fingerprinted {len(gallery)} images in {build_s:.2f} s "
              f"({args.device})")

        query_fp, query_buf = fingerprint_file(args.query, kernel)
        colour = mean_hsb(query_buf.pixels, query_buf.width, query_buf.height)
        print(f"Query {args.query} ({query_buf.width}x{query_buf.height}, "
              f"{len(query_fp)} keys, mean HSB "
              f"{colour.hue:.2f}/{colour.saturation:.2f}/{colour.brightness:.2f})")

        if args.threshold is not None:
            results = gallery.matches(query_fp, args.threshold)
        else:
            results = gallery.query(query_fp, top_k=args.top_k)
        for rank, (label, score) in enumerate(results, 1):
            print(f"  #{rank} {score:.4f}  {label}")
    finally:
        if device is not None:
            device.close()


if __name__ == "__main__":
    main()
