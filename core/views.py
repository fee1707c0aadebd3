import json
import logging
import time

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from .codec import decode_base64_image, encode_base64_jpeg
from .exceptions import InvalidInputError, RectificationError
from .geometry import normalize_corners
from .rectification_pipeline import RectificationLimits, run_rectification_pipeline

logger = logging.getLogger(__name__)


def _error(message, status):
    return JsonResponse({'error': message}, status=status)


def _optional_dimension(payload, key):
    value = payload.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidInputError(f"'{key}' must be a positive integer.")
    return value


def _parse_request(request):
    try:
        payload = json.loads(request.body or b'{}')
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidInputError(f"Request body is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise InvalidInputError('Request body must be a JSON object.')

    image_b64 = payload.get('imageBase64')
    if not isinstance(image_b64, str) or not image_b64.strip():
        raise InvalidInputError('imageBase64 is required.')

    corners = payload.get('corners')
    if not isinstance(corners, list):
        raise InvalidInputError('corners must be a list of four points.')
    quad = normalize_corners(corners)

    width = _optional_dimension(payload, 'sourceWidth')
    height = _optional_dimension(payload, 'sourceHeight')
    source_size = (width, height) if width is not None and height is not None else None
    return image_b64, quad, source_size


@csrf_exempt
@require_POST
def rectify(request):
    limits = RectificationLimits.from_settings()
    deadline = None
    if limits.deadline_seconds is not None:
        deadline = time.monotonic() + limits.deadline_seconds
    try:
        image_b64, quad, source_size = _parse_request(request)
        image = decode_base64_image(image_b64)
        result = run_rectification_pipeline(
            image,
            quad,
            source_size=source_size,
            limits=limits,
            deadline=deadline,
            encode=False,
        )
        encoded = encode_base64_jpeg(result.image, limits.jpeg_quality)
    except RectificationError as exc:
        if exc.status_code < 500:
            logger.warning('Rejected rectification request: %s', exc)
        else:
            logger.error('Rectification failed: %s', exc)
        return _error(str(exc), exc.status_code)
    except Exception as exc:
        logger.exception('Unexpected rectification failure')
        return _error(str(exc) or 'Rectification failed', 500)

    return JsonResponse({
        'imageBase64': encoded,
        'width': result.dimensions.width,
        'height': result.dimensions.height,
    })
