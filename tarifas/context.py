"""
Evaluation context for tariff formulas.

Calendar values resolve in this order: explicit field, ``fecha``, then the
injected clock. Passing a fixed clock makes calendar functions deterministic.
"""
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now()


def day_of_week(moment: date) -> int:
    """Day of week with 0=Sunday ... 6=Saturday."""
    return (moment.weekday() + 1) % 7


def quarter_of(month: int) -> int:
    return math.ceil(month / 3)


@dataclass(frozen=True)
class EvaluationContext:
    valor: Optional[float] = None
    peaje: Optional[float] = None
    palets: Optional[float] = None
    cantidad: Optional[float] = None
    distancia: Optional[float] = None
    peso: Optional[float] = None
    volumen: Optional[float] = None
    dia_semana: Optional[int] = None
    mes: Optional[int] = None
    trimestre: Optional[int] = None
    es_fin_de_semana: Optional[bool] = None
    fecha: Optional[datetime] = None
    variables: Dict[str, Any] = field(default_factory=dict)

    STANDARD_FIELDS = {
        "valor": "Valor",
        "peaje": "Peaje",
        "palets": "Palets",
        "cantidad": "Cantidad",
        "distancia": "Distancia",
        "peso": "Peso",
        "volumen": "Volumen",
        "dia_semana": "DiaSemana",
        "mes": "Mes",
        "trimestre": "Trimestre",
        "es_fin_de_semana": "EsFinDeSemana",
    }

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "EvaluationContext":
        """
        Build a context from a formula-style mapping ({"Valor": 100, "Mes": 6, ...}).

        Keys that are not standard fields end up in ``variables``.
        """
        by_variable = {name: attr for attr, name in cls.STANDARD_FIELDS.items()}
        kwargs: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            if key in by_variable:
                kwargs[by_variable[key]] = value
            elif key in ("Fecha", "fecha"):
                kwargs["fecha"] = value
            elif key in cls.STANDARD_FIELDS:
                kwargs[key] = value
            else:
                extra[key] = value
        return cls(variables=extra, **kwargs)

    def as_variables(self) -> Dict[str, Any]:
        """Formula variables exposed by this context; unset fields are omitted."""
        result = dict(self.variables)
        for attr, name in self.STANDARD_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                result[name] = value
        return result

    def resolve_day_of_week(self, clock: Optional[Clock] = None) -> int:
        if self.dia_semana is not None:
            return int(self.dia_semana)
        return day_of_week(self._moment(clock))

    def resolve_month(self, clock: Optional[Clock] = None) -> int:
        if self.mes is not None:
            return int(self.mes)
        return self._moment(clock).month

    def resolve_quarter(self, clock: Optional[Clock] = None) -> int:
        if self.trimestre is not None:
            return int(self.trimestre)
        return quarter_of(self._moment(clock).month)

    def resolve_weekend(self, clock: Optional[Clock] = None) -> int:
        if self.es_fin_de_semana is not None:
            return 1 if self.es_fin_de_semana else 0
        return 1 if day_of_week(self._moment(clock)) in (0, 6) else 0

    def _moment(self, clock: Optional[Clock]) -> datetime:
        if self.fecha is not None:
            return self.fecha
        return (clock or system_clock)()
