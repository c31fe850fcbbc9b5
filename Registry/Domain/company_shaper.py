# Registry/Domain/company_shaper.py
"""
Response shaping for the Recherche d'entreprises API.

Raw results are opaque supersets of fields. Each model below picks the subset
we expose and fills a documented default for every field that is missing or
null in the raw payload:

- scalars default to None,
- establishment counts default to 0,
- list-valued registry fields default to [],
- `est_siege` defaults to True on the head office and False elsewhere,
- `ancien_siege` defaults to False.

Nested blocks (`siege`, `dirigeants`, `complements`, `finances`,
`matching_etablissements`) are only emitted when the raw record carries them.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Callable, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

OPTIONAL_BLOCKS = ("siege", "dirigeants", "complements", "finances", "matching_etablissements")


def _default_if_none(factory: Callable[[], Any]) -> BeforeValidator:
    return BeforeValidator(lambda value: factory() if value is None else value)


# Values are passed through as the registry sends them; only missing or null
# values are replaced.
Scalar = Optional[Any]
Count = Annotated[Any, _default_if_none(int)]
Listing = Annotated[Any, _default_if_none(list)]
Flag = Annotated[Any, _default_if_none(bool)]
HeadOfficeFlag = Annotated[Any, _default_if_none(lambda: True)]


class _RawModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _from_raw(cls, raw: Any) -> Any:
        # a record that is not an object shapes to all defaults
        return raw if isinstance(raw, dict) else {}


class Siege(_RawModel):
    """Head-office establishment."""
    siret: Scalar = None
    adresse: Scalar = None
    code_postal: Scalar = None
    commune: Scalar = None
    departement: Scalar = None
    region: Scalar = None
    epci: Scalar = None
    geo_id: Scalar = None
    latitude: Scalar = None
    longitude: Scalar = None
    activite_principale: Scalar = None
    tranche_effectif_salarie: Scalar = None
    date_creation: Scalar = None
    date_fermeture: Scalar = None
    etat_administratif: Scalar = None
    est_siege: HeadOfficeFlag = True
    liste_idcc: Listing = Field(default_factory=list)
    liste_rge: Listing = Field(default_factory=list)
    liste_finess: Listing = Field(default_factory=list)
    liste_uai: Listing = Field(default_factory=list)
    liste_id_bio: Listing = Field(default_factory=list)


class Dirigeant(_RawModel):
    """Director or official. `siren`/`denomination` are only set for legal entities."""
    type_dirigeant: Scalar = None
    nom: Scalar = None
    prenoms: Scalar = None
    annee_de_naissance: Scalar = None
    date_de_naissance: Scalar = None
    qualite: Scalar = None
    nationalite: Scalar = None
    siren: Scalar = None
    denomination: Scalar = None


class Etablissement(_RawModel):
    """Establishment matching the search criteria."""
    siret: Scalar = None
    adresse: Scalar = None
    code_postal: Scalar = None
    commune: Scalar = None
    departement: Scalar = None
    region: Scalar = None
    epci: Scalar = None
    est_siege: Flag = False
    ancien_siege: Flag = False
    etat_administratif: Scalar = None
    activite_principale: Scalar = None
    tranche_effectif_salarie: Scalar = None
    date_creation: Scalar = None
    date_fermeture: Scalar = None
    liste_enseignes: Listing = Field(default_factory=list)
    liste_idcc: Listing = Field(default_factory=list)
    liste_rge: Listing = Field(default_factory=list)
    liste_finess: Listing = Field(default_factory=list)
    liste_uai: Listing = Field(default_factory=list)
    liste_id_bio: Listing = Field(default_factory=list)
    latitude: Scalar = None
    longitude: Scalar = None


class Entreprise(_RawModel):
    """A company (unité légale) as exposed to the agent."""
    nom: Scalar = None
    siren: Scalar = None
    sigle: Scalar = None
    siege: Optional[Siege] = None
    activite_principale: Scalar = None
    section_activite_principale: Scalar = None
    categorie_entreprise: Scalar = None
    nature_juridique: Scalar = None
    etat_administratif: Scalar = None
    date_creation: Scalar = None
    date_fermeture: Scalar = None
    date_mise_a_jour: Scalar = None
    tranche_effectif_salarie: Scalar = None
    annee_tranche_effectif_salarie: Scalar = None
    caractere_employeur: Scalar = None
    nombre_etablissements: Count = 0
    nombre_etablissements_ouverts: Count = 0
    dirigeants: Optional[List[Dirigeant]] = None
    complements: Optional[Any] = None
    finances: Optional[Any] = None
    matching_etablissements: Optional[List[Etablissement]] = None

    @model_validator(mode="before")
    @classmethod
    def _from_raw(cls, raw: Any) -> Any:
        data = dict(raw) if isinstance(raw, dict) else {}
        data["nom"] = data.get("nom_raison_sociale") or data.get("nom_complet") or None
        # empty lists are dropped like absent ones
        for key in ("dirigeants", "matching_etablissements"):
            if not isinstance(data.get(key), list) or not data[key]:
                data[key] = None
        return data

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump()
        for key in OPTIONAL_BLOCKS:
            if doc[key] is None:
                del doc[key]
        return doc


class SearchPage(BaseModel):
    """One page of shaped results plus the API's pagination metadata."""
    resultats: List[Entreprise] = Field(default_factory=list)
    total_results: Any = 0
    page: Any = 1
    per_page: Any = 10
    total_pages: Any = 0

    def to_document(self) -> Dict[str, Any]:
        return {
            "resultats": [e.to_document() for e in self.resultats],
            "total_results": self.total_results,
            "page": self.page,
            "per_page": self.per_page,
            "total_pages": self.total_pages,
        }


def shape_company(raw: Any) -> Dict[str, Any]:
    return Entreprise.model_validate(raw).to_document()


def shape_results(body: Any) -> SearchPage:
    """Map a successful API body to a SearchPage, defaulting absent pagination."""
    if not isinstance(body, dict):
        body = {}
    results = body.get("results")
    if not isinstance(results, list):
        results = []
    defaults = SearchPage()
    return SearchPage(
        resultats=[Entreprise.model_validate(raw) for raw in results],
        total_results=body.get("total_results") or defaults.total_results,
        page=body.get("page") or defaults.page,
        per_page=body.get("per_page") or defaults.per_page,
        total_pages=body.get("total_pages") or defaults.total_pages,
    )


def format_results(body: Any) -> str:
    """Shaped results as the pretty-printed JSON text returned by the tools."""
    return json.dumps(shape_results(body).to_document(), indent=2, ensure_ascii=False)
