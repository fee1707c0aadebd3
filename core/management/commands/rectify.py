import os
from dataclasses import replace

import requests
from django.core.management.base import BaseCommand
from django.core.management.base import CommandError

from core.codec import decode_image
from core.exceptions import RectificationError
from core.rectification_pipeline import RectificationLimits, run_rectification_pipeline

SNAPSHOT_TIMEOUT = 10.0


def _parse_corner(value):
    try:
        x_text, y_text = value.split(',')
        return float(x_text), float(y_text)
    except ValueError as exc:
        raise CommandError(f"Corner '{value}' must look like X,Y") from exc


class Command(BaseCommand):
    help = 'Rectifies the quadrilateral given by four corners (TL TR BR BL) of an image into a JPEG'

    def add_arguments(self, parser):
        source = parser.add_mutually_exclusive_group(required=True)
        source.add_argument('--image', type=str, help='Path to the source image')
        source.add_argument('--url', type=str, help='HTTP endpoint returning the source image')
        parser.add_argument('--corners', nargs=4, required=True, metavar='X,Y', help='Corners in TL TR BR BL order')
        parser.add_argument('--output', type=str, required=True, help='Where to write the rectified JPEG')
        parser.add_argument('--quality', type=int, help='JPEG quality (defaults to RECTIFIER_JPEG_QUALITY)')

    def handle(self, *args, **options):
        corners = [_parse_corner(value) for value in options['corners']]
        data = self._load_source(options)

        limits = RectificationLimits.from_settings()
        if options.get('quality') is not None:
            limits = replace(limits, jpeg_quality=options['quality'])

        try:
            image = decode_image(data)
            result = run_rectification_pipeline(image, corners, limits=limits)
        except RectificationError as exc:
            raise CommandError(str(exc)) from exc

        output = options['output']
        directory = os.path.dirname(output)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(output, 'wb') as handle:
            handle.write(result.jpeg_bytes)

        dims = result.dimensions
        self.stdout.write(self.style.SUCCESS(f"Wrote {dims.width}x{dims.height} rectified image to {output}"))

    def _load_source(self, options):
        image_path = options.get('image')
        if image_path:
            if not os.path.exists(image_path):
                raise CommandError(f"Could not find source image at {image_path}")
            with open(image_path, 'rb') as handle:
                return handle.read()

        url = options['url']
        try:
            response = requests.get(url, timeout=SNAPSHOT_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise CommandError(f"Failed to fetch source image from {url}: {exc}") from exc
        return response.content
