"""
Demo de Mixreel
Ejecuta el escenario básico: artista al azar, 30 segundos, estilo clásico.
"""
import logging

from mixreel.director.parser import RequestParser
from mixreel.pipeline import MixVideoPipeline, print_result

logging.basicConfig(level=logging.INFO)

DEMO_REQUEST = """
```json
{
    "artist_selector": "random",
    "target_duration_seconds": 30,
    "visual_style": "classic",
    "audio_source": "remote",
    "fade_in_seconds": 2,
    "fade_out_seconds": 2,
    "quality_tier": "high"
}
```
"""


def main():
    print("🎬 Mixreel - demo")
    request = RequestParser().parse(DEMO_REQUEST)
    pipeline = MixVideoPipeline()
    try:
        print_result(pipeline.run(request))
    finally:
        pipeline.close()


if __name__ == "__main__":
    main()
