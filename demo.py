#!/usr/bin/env python3
"""
Demo Script - Local Enhancement Pipeline
Analyses a synthetic dim interior, shows the strategy a remote provider
would get, and runs the local processor on it. No network or storage needed.
"""
import io
import sys
import time
from pathlib import Path


def create_test_image():
    """Dim, slightly noisy room shot"""
    import numpy as np
    from PIL import Image, ImageDraw

    img = Image.new('RGB', (800, 600), color=(45, 40, 35))
    draw = ImageDraw.Draw(img)

    # Window light falling off across the floor
    for y in range(350, 600):
        shade = int(40 + (y - 350) / 250 * 30)
        draw.line([(0, y), (800, y)], fill=(shade, shade - 4, shade - 8))
    draw.rectangle([520, 80, 720, 300], fill=(110, 105, 95), outline=(20, 20, 20), width=4)
    draw.rectangle([80, 380, 380, 520], fill=(60, 45, 35))

    rng = np.random.default_rng(42)
    arr = np.asarray(img).astype(np.int16)
    arr += rng.integers(-12, 13, size=arr.shape, dtype=np.int16)
    return Image.fromarray(np.clip(arr, 0, 255).astype(np.uint8))


def main():
    print("=" * 60)
    print("🏠 MEDIA ENHANCEMENT PIPELINE - DEMO")
    print("=" * 60)

    print("\n📦 Loading components...")
    from media_pipeline.analyzer import ContentAnalyzer
    from media_pipeline.config import OutputFormat
    from media_pipeline.local_processor import LocalProcessor
    from media_pipeline.logging_config import setup_logging
    from media_pipeline.models import EnhancementRequest, OperationFlags
    from media_pipeline.strategy import StrategySelector

    setup_logging(level="INFO", log_to_file=False, log_to_console=True)

    analyzer = ContentAnalyzer()
    selector = StrategySelector()
    processor = LocalProcessor()
    print("✅ Components loaded successfully")

    print("\n🎨 Creating test image...")
    buffer = io.BytesIO()
    create_test_image().save(buffer, format='JPEG', quality=85)
    original_bytes = buffer.getvalue()
    print(f"✅ Test image created: {len(original_bytes)/1024:.1f} KB")

    print("\n📊 Analysing content...")
    context = analyzer.analyze(original_bytes)
    print(f"   Scene: {context.scene_type.value}")
    print(f"   Lighting: {context.lighting.value} (brightness {context.brightness:.1f})")
    print(f"   Quality: {context.quality.value}")
    print(f"   Issues: {', '.join(context.issues) or 'none'}")

    suggestions = analyzer.generate_suggestions(original_bytes)
    print(f"   Suggested preset: {suggestions.primary} ({suggestions.confidence:.0%})")

    scenarios = {
        "lighting": OperationFlags(lighting=True),
        "quality": OperationFlags(quality_boost=True, noise_reduction=True),
        "upscale": OperationFlags(lighting=True, upscale=True),
    }

    print("\n🔧 Running scenarios...")
    results = []
    for name, operations in scenarios.items():
        request = EnhancementRequest(source_url="demo://room.jpg", operations=operations)
        plan = selector.select_strategy(context, request)

        start = time.time()
        outcome = processor.apply(original_bytes, operations, OutputFormat.JPEG)
        elapsed = time.time() - start

        results.append({
            'name': name,
            'strategy': plan.strategy.value,
            'time_ms': int(elapsed * 1000),
            'size_kb': len(outcome.data) / 1024,
            'operations': outcome.operations_applied,
            'data': outcome.data,
        })
        print(f"   ✅ {name}: remote would use {plan.strategy.value}, local applied {', '.join(outcome.operations_applied)}")

    print("\n" + "=" * 60)
    print("📈 RESULTS SUMMARY")
    print("=" * 60)
    print(f"{'Scenario':<12} {'Strategy':<20} {'Time':<10} {'Size':<10} {'Steps'}")
    print("-" * 60)
    for r in results:
        print(f"{r['name']:<12} {r['strategy']:<20} {r['time_ms']:>6}ms   {r['size_kb']:>6.1f}KB  {len(r['operations'])}")

    print("\n💾 Saving images...")
    output_dir = Path("data/demo_output")
    output_dir.mkdir(parents=True, exist_ok=True)
    (output_dir / "original.jpg").write_bytes(original_bytes)
    for r in results:
        (output_dir / f"enhanced_{r['name']}.jpg").write_bytes(r['data'])
    print(f"✅ Images saved to: {output_dir.absolute()}")

    print("\n" + "=" * 60)
    print("🚀 NEXT STEPS")
    print("=" * 60)
    print("""
1. Configure providers and storage in .env:
   REPLICATE_API_TOKEN, OPENAI_API_KEY, R2_* variables

2. Start the API server:
   uvicorn api.main:app --reload --port 8000

3. Enhance a stored photo:
   curl -X POST "http://localhost:8000/api/v1/enhance" \\
     -H "Content-Type: application/json" \\
     -d '{"url": "https://media.example.com/main/projects/p1/original/room.jpg", "preset": "quick_fix"}'
""")

    print("\n✨ Demo completed successfully!")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except Exception as e:
        print(f"\n❌ Error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
