import time

from flask import current_app, g
from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

from .backend import BackendError

IMAGES_BUCKET = 'images'
# folder prefix and file name stem per admin screen
UPLOAD_TARGETS = {
    'hero': ('hero', 'hero'),
    'services': ('services', 'service'),
    'products': ('products', 'product'),
}
EXTENSION_MIME_TYPES = {
    'png': {'image/png'},
    'jpg': {'image/jpeg'},
    'jpeg': {'image/jpeg'},
    'gif': {'image/gif'},
    'webp': {'image/webp'},
}


class InvalidUpload(ValueError):
    pass


def has_upload(file):
    return bool(file and getattr(file, 'filename', ''))


def file_extension(filename):
    return filename.rsplit('.', 1)[1].lower() if '.' in filename else ''


def validate_image(file):
    filename = secure_filename(file.filename or '')
    if not filename or len(filename) > 180:
        return False
    extension = file_extension(filename)
    if extension not in current_app.config.get('ALLOWED_IMAGE_EXTENSIONS', EXTENSION_MIME_TYPES.keys()):
        return False

    mime_type = (file.mimetype or '').split(';', 1)[0].lower()
    allowed_mimes = current_app.config.get('ALLOWED_UPLOAD_MIME_TYPES', set())
    if mime_type not in allowed_mimes or mime_type not in EXTENSION_MIME_TYPES.get(extension, set()):
        return False

    max_pixels = max(1, int(current_app.config.get('MAX_UPLOAD_IMAGE_PIXELS', 40_000_000)))
    file.stream.seek(0)
    try:
        with Image.open(file.stream) as image:
            width, height = image.size
            if width < 1 or height < 1 or (width * height) > max_pixels:
                return False
            image.verify()
        return True
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError):
        return False
    finally:
        file.stream.seek(0)


def object_path(target, filename):
    prefix, stem = UPLOAD_TARGETS[target]
    millis = int(time.time() * 1000)
    return f'{prefix}/{stem}-{millis}.{file_extension(secure_filename(filename))}'


def upload_image(backend, file, target):
    """Store ``file`` in the images bucket and return its public URL."""
    if not validate_image(file):
        raise InvalidUpload('Please upload a PNG, JPG, GIF or WEBP image.')
    path = backend.storage.upload(IMAGES_BUCKET, object_path(target, file.filename), file)
    current_app.logger.info(f'Uploaded image {IMAGES_BUCKET}/{path}')
    url = backend.storage.get_public_url(IMAGES_BUCKET, path)
    g.setdefault('stored_uploads', []).append((path, url))
    return url


def discard_uploads(backend):
    """Remove images stored earlier in this request whose record write failed.

    Returns the public URLs of the removed objects.
    """
    discarded = []
    for path, url in g.pop('stored_uploads', []):
        try:
            backend.storage.remove(IMAGES_BUCKET, path)
        except BackendError as exc:
            current_app.logger.warning(f'Could not remove orphaned image {IMAGES_BUCKET}/{path}: {exc.message}')
            continue
        current_app.logger.info(f'Removed orphaned image {IMAGES_BUCKET}/{path}')
        discarded.append(url)
    return discarded
