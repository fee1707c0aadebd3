from io import StringIO

import cv2
import numpy as np
import pytest
import requests
from django.core.management import call_command
from django.core.management.base import CommandError


def write_source(path):
    grad = (np.add.outer(np.arange(120), np.arange(160)) % 200 + 20).astype(np.uint8)
    cv2.imwrite(str(path), np.dstack([grad, grad, grad]))


def test_rectify_command_writes_jpeg(tmp_path):
    source = tmp_path / 'postcard.png'
    output = tmp_path / 'out' / 'rectified.jpg'
    write_source(source)

    stdout = StringIO()
    call_command(
        'rectify',
        '--image', str(source),
        '--corners', '10,12', '150,8', '155,110', '6,105',
        '--output', str(output),
        '--quality', '70',
        stdout=stdout,
    )

    image = cv2.imread(str(output))
    assert image.shape == (102, 149, 3)
    assert '149x102' in stdout.getvalue()


def test_rectify_command_missing_image(tmp_path):
    with pytest.raises(CommandError, match='Could not find'):
        call_command(
            'rectify',
            '--image', str(tmp_path / 'missing.jpg'),
            '--corners', '0,0', '10,0', '10,10', '0,10',
            '--output', str(tmp_path / 'out.jpg'),
        )


def test_rectify_command_bad_corner(tmp_path):
    source = tmp_path / 'postcard.png'
    write_source(source)
    with pytest.raises(CommandError, match='X,Y'):
        call_command(
            'rectify',
            '--image', str(source),
            '--corners', '0,0', '10;0', '10,10', '0,10',
            '--output', str(tmp_path / 'out.jpg'),
        )


def test_rectify_command_degenerate_corners(tmp_path):
    source = tmp_path / 'postcard.png'
    write_source(source)
    with pytest.raises(CommandError, match='collinear'):
        call_command(
            'rectify',
            '--image', str(source),
            '--corners', '0,0', '50,0', '100,0', '0,50',
            '--output', str(tmp_path / 'out.jpg'),
        )


class FakeResponse:
    def __init__(self, content, status_code=200):
        self.content = content
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


def test_rectify_command_fetches_url(tmp_path, monkeypatch):
    grad = (np.add.outer(np.arange(120), np.arange(160)) % 200 + 20).astype(np.uint8)
    ok, buffer = cv2.imencode('.jpg', np.dstack([grad, grad, grad]))
    assert ok
    requested = []

    def fake_get(url, timeout):
        requested.append(url)
        return FakeResponse(buffer.tobytes())

    monkeypatch.setattr(requests, 'get', fake_get)
    output = tmp_path / 'rectified.jpg'
    call_command(
        'rectify',
        '--url', 'http://camera.local/last.jpg',
        '--corners', '10,12', '150,8', '155,110', '6,105',
        '--output', str(output),
        stdout=StringIO(),
    )

    assert requested == ['http://camera.local/last.jpg']
    assert cv2.imread(str(output)).shape == (102, 149, 3)


def test_rectify_command_url_http_error(tmp_path, monkeypatch):
    monkeypatch.setattr(requests, 'get', lambda url, timeout: FakeResponse(b'', status_code=503))
    with pytest.raises(CommandError, match='Failed to fetch'):
        call_command(
            'rectify',
            '--url', 'http://camera.local/last.jpg',
            '--corners', '10,12', '150,8', '155,110', '6,105',
            '--output', str(tmp_path / 'out.jpg'),
        )
