"""Template de prompt do assistente como seções nomeadas e ordenadas.

Cada seção tem texto padrão e, opcionalmente, texto customizado pelo
tenant. Renderização é concatenação simples, sem substituição por regex.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, model_validator


class PromptSection(BaseModel):
    """Seção do prompt."""

    model_config = ConfigDict(frozen=True)

    name: str
    default_text: str
    custom_text: str | None = None

    @property
    def text(self) -> str:
        return self.custom_text if self.custom_text else self.default_text


class PromptTemplate(BaseModel):
    """Sequência ordenada de seções."""

    model_config = ConfigDict(frozen=True)

    sections: tuple[PromptSection, ...]

    @model_validator(mode="after")
    def validate_unique_names(self) -> PromptTemplate:
        names = [s.name for s in self.sections]
        if len(names) != len(set(names)):
            msg = "nomes de seção duplicados no template"
            raise ValueError(msg)
        return self

    def customize(self, name: str, text: str | None) -> PromptTemplate:
        """Retorna novo template com o texto customizado da seção `name`."""
        if name not in {s.name for s in self.sections}:
            msg = f"seção desconhecida: {name}"
            raise KeyError(msg)
        sections = tuple(
            s.model_copy(update={"custom_text": text}) if s.name == name else s
            for s in self.sections
        )
        return PromptTemplate(sections=sections)

    def render(self, separator: str = "\n\n") -> str:
        return separator.join(s.text.strip() for s in self.sections if s.text.strip())
