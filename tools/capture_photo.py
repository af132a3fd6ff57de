"""
Capture Photo

Run the full capture pipeline (multi-pass OCR, scoring, place resolution,
save) on an image file, as if it had just been taken at the given location.

Usage:
    python3 tools/capture_photo.py <image> --lat <latitude> --lon <longitude>

Example:
    python3 tools/capture_photo.py samples/luigis.jpg --lat 40.7359 --lon -73.9911
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from placelens.capture_pipeline import CapturePipeline
from placelens.config import load_config
from placelens.errors import PersistenceFailed
from placelens.gps_utils import validate_gps_coordinate
from placelens.models import Coordinate


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Identify the storefront in a photo and save it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Capture with default config
  python3 tools/capture_photo.py shop.jpg --lat 40.7359 --lon -73.9911

  # Use another config file and log analytics
  PLACELENS_DEBUG_ANALYTICS=1 python3 tools/capture_photo.py shop.jpg --lat 40.7359 --lon -73.9911 --config my.yaml
        """
    )

    parser.add_argument('image', type=str, help='Path to the captured image (JPEG/PNG)')
    parser.add_argument('--lat', type=float, required=True, help='Device latitude (degrees)')
    parser.add_argument('--lon', type=float, required=True, help='Device longitude (degrees)')
    parser.add_argument('--alt', type=float, default=0.0, help='Device altitude in meters (default: 0)')
    parser.add_argument(
        '--config',
        type=str,
        default='config/placelens.yaml',
        help='Pipeline config file (default: config/placelens.yaml)'
    )

    args = parser.parse_args()

    image_path = Path(args.image)
    if not image_path.exists():
        print(f"Error: Image not found: {image_path}")
        sys.exit(1)
    if not validate_gps_coordinate(args.lat, args.lon):
        print(f"Error: Invalid coordinate: {args.lat}, {args.lon}")
        sys.exit(1)

    image_bytes = image_path.read_bytes()
    location = Coordinate(latitude=args.lat, longitude=args.lon, altitude=args.alt)

    pipeline = CapturePipeline.from_config(load_config(args.config))
    try:
        outcome = pipeline.submit_capture(image_bytes, image_bytes, location).result()
    except PersistenceFailed as e:
        print(f"✗ Could not save photo: {e}")
        if e.resolution is not None:
            print(f"  Resolved as: {e.resolution.verified_name or '-'} ({e.resolution.category})")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)
    finally:
        pipeline.shutdown()

    print("=" * 60)
    print("Candidates:")
    for index, candidate in enumerate(outcome.recognition.candidates, 1):
        print(f"  {index}. {candidate.text!r:30} score={candidate.score:.3f} ({candidate.debug})")

    resolution = outcome.resolution
    print("\nResolution:")
    print(f"  Source:   {resolution.source.value}")
    print(f"  Name:     {resolution.verified_name or outcome.recognition.best_text or '-'}")
    print(f"  Category: {resolution.category}")
    print(f"  Address:  {resolution.address or '-'}")
    print(f"  City:     {', '.join(p for p in (resolution.city, resolution.state, resolution.country) if p) or '-'}")
    print(f"  Phone:    {resolution.phone_number or '-'}")
    print(f"\n✓ Saved as photo {outcome.photo_id}")


if __name__ == "__main__":
    main()
