"""
OCR Statistics

Summarize the OCR analysis database: overall accuracy against user
corrections and which recognition pass wins most often.

Usage:
    python3 tools/ocr_stats.py [--db data/ocr_analysis.db] [--export out.json]
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from placelens.ocr_logger import OCRLogger


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Summarize logged OCR attempts")
    parser.add_argument(
        '--db',
        type=str,
        default='data/ocr_analysis.db',
        help='OCR analysis database (default: data/ocr_analysis.db)'
    )
    parser.add_argument(
        '--images',
        type=str,
        default='data/ocr_images',
        help='Analysis image directory (default: data/ocr_images)'
    )
    parser.add_argument('--export', type=str, default=None, help='Write the newest attempts to this JSON file')
    parser.add_argument('--limit', type=int, default=100, help='Attempts to export (default: 100)')

    args = parser.parse_args()

    if not Path(args.db).exists():
        print(f"Error: Database not found: {args.db}")
        sys.exit(1)

    ocr_logger = OCRLogger(args.db, args.images)

    stats = ocr_logger.get_accuracy_stats()
    print("=" * 60)
    print("OCR Accuracy")
    print("=" * 60)
    print(f"Corrected attempts: {stats['total']}")
    print(f"Correct:            {stats['correct']}")
    print(f"Accuracy:           {stats['accuracy']:.1f}%")

    print("\nBy method:")
    for row in ocr_logger.get_method_performance():
        print(f"  {row['method']:22} {row['success_rate']:5.1f}%  ({row['count']} attempts)")

    if args.export:
        Path(args.export).write_text(ocr_logger.export_all(limit=args.limit), encoding='utf-8')
        print(f"\n✓ Exported to {args.export}")


if __name__ == "__main__":
    main()
