# storage/credential_store.py
"""
Хранилище токенов авторизации: текстовый файл, по одному токену на строку.

Каждое изменение перечитывает файл, применяет правку, сразу сохраняет её
и синхронизирует копию в памяти. Блокировок нет: рассчитано на один процесс.
"""
from pathlib import Path
from typing import List, Optional

from core.exceptions import StorageError
from core.functions import mask_credential
from core.logger import log_debug, log_info, log_warning


class CredentialStore:
    """Упорядоченный список токенов с немедленной записью на диск"""

    def __init__(self, path: str = "data.txt"):
        self.path = Path(path)
        self._credentials: List[str] = []

    @property
    def credentials(self) -> List[str]:
        """Копия последнего прочитанного списка"""
        return list(self._credentials)

    def __len__(self) -> int:
        return len(self._credentials)

    def load(self) -> List[str]:
        """
        Читает файл: пустые строки и символы \\r отбрасываются, порядок сохраняется.
        Отсутствующий файл читается как пустой список.

        Raises:
            StorageError: файл существует, но не читается
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            log_debug(0, f"Файл токенов {self.path} не найден, хранилище пустое", 'credential_store')
            self._credentials = []
            return []
        except OSError as e:
            raise StorageError(f"Не удалось прочитать {self.path}: {e}") from e

        self._credentials = [line.strip() for line in raw.replace("\r", "").split("\n") if line.strip()]
        return self.credentials

    def _persist(self, credentials: List[str]) -> None:
        content = "\n".join(credentials) + "\n" if credentials else ""
        try:
            if self.path.parent and not self.path.parent.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Не удалось записать {self.path}: {e}") from e
        self._credentials = list(credentials)

    def index_of(self, credential: str) -> Optional[int]:
        """Позиция токена в последнем прочитанном списке"""
        try:
            return self._credentials.index(credential)
        except ValueError:
            return None

    def replace_at(self, index: int, new_credential: str) -> bool:
        """
        Заменяет токен на позиции index.

        Returns:
            False, если такой токен уже есть на другой позиции или индекс вне списка
        """
        current = self.load()
        if not 0 <= index < len(current):
            log_warning(0, f"replace_at: индекс {index} вне диапазона (всего {len(current)})", 'credential_store')
            return False
        if new_credential in current and current.index(new_credential) != index:
            log_warning(0, f"Токен {mask_credential(new_credential)} уже есть в хранилище, замена пропущена",
                        'credential_store')
            return False

        current[index] = new_credential
        self._persist(current)
        log_info(0, f"Токен на позиции {index} заменён", 'credential_store')
        return True

    def insert_at(self, index: int, new_credential: str) -> bool:
        """Вставляет токен в освободившуюся позицию (индекс ограничивается длиной списка)"""
        current = self.load()
        if new_credential in current:
            log_warning(0, f"Токен {mask_credential(new_credential)} уже есть в хранилище, вставка пропущена",
                        'credential_store')
            return False

        index = max(0, min(index, len(current)))
        current.insert(index, new_credential)
        self._persist(current)
        log_info(0, f"Новый токен записан на позицию {index}", 'credential_store')
        return True

    def append(self, new_credential: str) -> bool:
        """Добавляет токен в конец, дубликаты пропускаются"""
        current = self.load()
        if new_credential in current:
            log_debug(0, f"Токен {mask_credential(new_credential)} уже сохранён", 'credential_store')
            return False

        current.append(new_credential)
        self._persist(current)
        return True

    def remove_at(self, index: int) -> str:
        """
        Удаляет токен с позиции index и сразу сохраняет файл.

        Raises:
            IndexError: индекс вне списка
        """
        current = self.load()
        removed = current.pop(index)
        self._persist(current)
        log_info(0, f"Токен {mask_credential(removed)} удалён с позиции {index}", 'credential_store')
        return removed
