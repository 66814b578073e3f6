"""
Servicio de almacenamiento de imágenes (object storage en disco).

Las imágenes se optimizan con Pillow (ancho máximo, WebP) y se guardan como
objetos "{folder}/{uuid}.webp". El public_id es lo que se persiste en la BD
para poder borrar el archivo después.

Subidas y borrados reintentan con espera fija; agotados los intentos se
responde 400 ("intenta de nuevo"), nunca 500.
"""
import asyncio
import io
import logging
import uuid
from pathlib import Path
from typing import NamedTuple

from PIL import Image, UnidentifiedImageError

from core.config import Settings
from core.errors import BadRequestError

logger = logging.getLogger(__name__)


class StoredImage(NamedTuple):
    url: str
    public_id: str


class StorageService:
    """Servicio para gestionar el almacenamiento de archivos."""

    def __init__(self, settings: Settings):
        self.base_dir = Path(settings.UPLOAD_DIR)
        self.base_url = settings.STORAGE_BASE_URL.rstrip("/")
        self.base_dir.mkdir(parents=True, exist_ok=True)

        # Configuración de optimización
        self.max_width = settings.IMAGE_MAX_WIDTH
        self.quality = settings.WEBP_QUALITY
        self.max_file_size = settings.MAX_UPLOAD_SIZE

        # Reintentos
        self.upload_retries = settings.UPLOAD_RETRIES
        self.delete_retries = settings.DELETE_RETRIES
        self.retry_delay = settings.STORAGE_RETRY_DELAY_SECONDS

    def _optimize_image(self, data: bytes) -> bytes:
        """Redimensionar y convertir a WebP"""
        if not data:
            raise BadRequestError("El archivo está vacío", "EMPTY_FILE")

        if len(data) > self.max_file_size:
            raise BadRequestError(
                f"El archivo es muy grande. Máximo: {self.max_file_size / (1024*1024)}MB",
                "FILE_TOO_LARGE"
            )

        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError):
            raise BadRequestError("El archivo debe ser una imagen válida", "INVALID_IMAGE")

        # Convertir a RGB si es necesario (para WebP)
        if image.mode in ('RGBA', 'LA', 'P'):
            background = Image.new('RGB', image.size, (255, 255, 255))
            if image.mode == 'P':
                image = image.convert('RGBA')
            background.paste(image, mask=image.split()[-1] if image.mode in ('RGBA', 'LA') else None)
            image = background
        elif image.mode != 'RGB':
            image = image.convert('RGB')

        if image.width > self.max_width:
            height = round(image.height * self.max_width / image.width)
            image = image.resize((self.max_width, max(height, 1)), Image.Resampling.LANCZOS)

        output = io.BytesIO()
        image.save(output, format='WEBP', quality=self.quality, method=6)
        return output.getvalue()

    def _path_for(self, public_id: str) -> Path:
        path = (self.base_dir / f"{public_id}.webp").resolve()
        if self.base_dir.resolve() not in path.parents:
            raise BadRequestError("Identificador de imagen inválido", "INVALID_PUBLIC_ID")
        return path

    def _write(self, public_id: str, data: bytes) -> None:
        path = self._path_for(public_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'wb') as f:
            f.write(data)

    def _remove(self, public_id: str) -> None:
        try:
            self._path_for(public_id).unlink()
        except FileNotFoundError:
            # Ya no existe: el objetivo del borrado se cumple igual
            pass

    async def upload(self, data: bytes, folder: str = "products") -> StoredImage:
        """
        Optimizar y guardar una imagen.
        Una imagen inválida falla de inmediato; los errores de escritura se reintentan.
        """
        optimized = self._optimize_image(data)
        public_id = f"{folder}/{uuid.uuid4().hex}"

        for attempt in range(self.upload_retries + 1):
            try:
                self._write(public_id, optimized)
                return StoredImage(url=f"{self.base_url}/{public_id}.webp", public_id=public_id)
            except OSError as e:
                if attempt == self.upload_retries:
                    logger.error(f"❌ Subida de imagen fallida tras {attempt + 1} intentos: {e}")
                    raise BadRequestError(
                        "No se pudo subir la imagen, intenta de nuevo",
                        "UPLOAD_FAILED"
                    )
                logger.warning(f"Error subiendo imagen (intento {attempt + 1}): {e}")
                await asyncio.sleep(self.retry_delay)

    async def delete(self, public_id: str) -> None:
        """Borrar una imagen por su public_id"""
        for attempt in range(self.delete_retries + 1):
            try:
                self._remove(public_id)
                return
            except OSError as e:
                if attempt == self.delete_retries:
                    logger.error(f"❌ Borrado de imagen {public_id} fallido tras {attempt + 1} intentos: {e}")
                    raise BadRequestError(
                        "No se pudo borrar la imagen, intenta de nuevo",
                        "DELETE_FAILED"
                    )
                logger.warning(f"Error borrando imagen {public_id} (intento {attempt + 1}): {e}")
                await asyncio.sleep(self.retry_delay)
