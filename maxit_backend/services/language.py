import logging

from sqlmodel import Session, col, select

from maxit_backend.dependencies.common import DBSession
from maxit_backend.errors import ErrorCode, ServiceError
from maxit_backend.models.submission import LANGUAGE_EXTENSIONS, LanguageConfig, LanguageType
from maxit_backend.schemas.worker import HandshakeLanguage

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGES: dict[LanguageType, list[str]] = {
    LanguageType.C: ["99", "11", "17", "18"],
    LanguageType.CPP: ["11", "14", "17", "20", "23"],
}


class LanguageService:
    def __init__(self, db_session: DBSession):
        self.db_session: Session = db_session

    def get_all_enabled(self) -> list[LanguageConfig]:
        statement = (
            select(LanguageConfig)
            .where(col(LanguageConfig.is_disabled).is_(False))
            .order_by(col(LanguageConfig.type), col(LanguageConfig.id))
        )
        return list(self.db_session.exec(statement).all())

    def get_all(self) -> list[LanguageConfig]:
        statement = select(LanguageConfig).order_by(col(LanguageConfig.type), col(LanguageConfig.id))
        return list(self.db_session.exec(statement).all())

    def toggle(self, language_id: int) -> LanguageConfig:
        """Flip whether a language version can be used for new submissions."""
        if (language := self.db_session.get(LanguageConfig, language_id)) is None:
            raise ServiceError(ErrorCode.LANGUAGE_NOT_FOUND)
        language.is_disabled = not language.is_disabled
        self.db_session.add(language)
        self.db_session.commit()
        self.db_session.refresh(language)
        logger.info(
            f"Language {language.type} {language.version} "
            f"{'disabled' if language.is_disabled else 'enabled'}"
        )
        return language

    def get_enabled(self, language_id: int) -> LanguageConfig:
        language = self.db_session.get(LanguageConfig, language_id)
        if language is None or language.is_disabled:
            raise ServiceError(ErrorCode.INVALID_LANGUAGE)
        return language

    def _get_or_create(self, language_type: LanguageType, version: str) -> LanguageConfig:
        language = self.db_session.exec(
            select(LanguageConfig).where(
                LanguageConfig.type == language_type, LanguageConfig.version == version
            )
        ).first()
        if language is None:
            language = LanguageConfig(
                type=language_type,
                version=version,
                file_extension=LANGUAGE_EXTENSIONS[language_type],
            )
        return language

    def seed_defaults(self) -> int:
        """Create the default language versions that do not exist yet. Returns how many were added."""
        created = 0
        for language_type, versions in DEFAULT_LANGUAGES.items():
            for version in versions:
                language = self._get_or_create(language_type, version)
                if language.id is None:
                    self.db_session.add(language)
                    created += 1
        self.db_session.commit()
        return created

    def sync_with_worker(self, languages: list[HandshakeLanguage]):
        """Enable exactly the language versions the worker reports, creating unknown ones."""
        supported: set[tuple[LanguageType, str]] = set()
        for language in languages:
            try:
                language_type = LanguageType(language.name.lower())
            except ValueError:
                logger.warning(f"Worker reported unsupported language '{language.name}'")
                continue
            supported.update((language_type, version) for version in language.versions)

        for language_type, version in supported:
            language = self._get_or_create(language_type, version)
            language.is_disabled = False
            self.db_session.add(language)

        for language in self.db_session.exec(select(LanguageConfig)).all():
            if (language.type, language.version) not in supported and not language.is_disabled:
                language.is_disabled = True
                self.db_session.add(language)

        self.db_session.commit()
        logger.info(f"Synchronized languages with worker: {sorted(supported)}")
