"""
Recherche d'entreprises MCP Server
==================================

Exposes the public French company registry API
(https://recherche-entreprises.api.gouv.fr) to agents over MCP / stdio.

TOOLS
-----
1. rechercher_entreprise
    Full-text search with administrative, geographic, sector, person and
    financial filters (GET /search).

2. rechercher_entreprise_geographiques
    Companies around a point (GET /near_point).

Both tools return one text block holding pretty-printed JSON:
    {"resultats": [...], "total_results", "page", "per_page", "total_pages"}

Usage:
    mcp-recherche-entreprises
    python -m Registry.API.mcp_server

Client configuration:
    {
      "mcpServers": {
        "recherche-entreprises": {"command": "mcp-recherche-entreprises"}
      }
    }
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Annotated, Any, Dict, Literal, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from mcp.server.stdio import stdio_server
from mcp.types import TextContent
from pydantic import Field

from Registry.Adapters.Outbound.recherche_entreprises_adapter import RechercheEntreprisesClient
from Registry.config import get_settings
from Registry.Domain.company_shaper import format_results
from Registry.Domain.errors import RemoteApiError, TransportError
from Registry.Domain.query_encoder import build_url
from Registry.Domain.server_lifecycle import ServerLifecycle
from Registry.Ports.Outbound.registry_interface import (
    NEAR_POINT_ENDPOINT,
    SEARCH_ENDPOINT,
    CompanyRegistry,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "mcp-recherche-entreprises"
SERVER_VERSION = "1.0.0"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

READ_ONLY = {"readOnlyHint": True, "openWorldHint": True}

FILTRE_ETABLISSEMENTS = (
    "Ce paramètre filtre sur les établissements et accepte une valeur unique "
    "ou une liste de valeurs séparées par des virgules."
)
INCLUDE_FIELDS = "complements, dirigeants, finances, matching_etablissements, siege, score"


def create_server(client: Optional[CompanyRegistry] = None) -> FastMCP:
    """
    Build the MCP server and register both registry tools.

    Args:
        client: Registry client to query. When omitted, a RechercheEntreprisesClient
                is created from settings and closed when the server stops.
    """
    owns_client = client is None
    registry = client if client is not None else RechercheEntreprisesClient(
        base_url=get_settings().registry_api_url
    )

    @asynccontextmanager
    async def lifespan(server: FastMCP):
        try:
            yield {}
        finally:
            if owns_client:
                await registry.close()

    mcp = FastMCP(name=SERVER_NAME, version=SERVER_VERSION, lifespan=lifespan)

    async def run_query(endpoint: str, params: Dict[str, Any]) -> TextContent:
        url = build_url(endpoint, params)
        try:
            body = await registry.get(url)
        except RemoteApiError as e:
            raise ToolError(f"Erreur API: {e.message}") from e
        return TextContent(type="text", text=format_results(body))

    # =====================================================================
    # MCP TOOL: rechercher_entreprise
    # =====================================================================
    @mcp.tool(
        name="rechercher_entreprise",
        description=(
            "Recherche des entreprises françaises selon de nombreux critères "
            "(nom, activité, localisation, etc.)."
        ),
        annotations=READ_ONLY,
    )
    async def rechercher_entreprise(
        q: Annotated[str, Field(description="Termes de la recherche (dénomination et/ou adresse, dirigeants, élus)")],
        activite_principale: Annotated[Optional[str], Field(description=(
            "Le code NAF ou code APE, un code d'activité suivant la nomenclature de l'INSEE. "
            "Ce paramètre accepte une valeur unique ou une liste de valeurs séparées par des virgules. "
            "Il ne s'applique qu'à l'unité légale, et non à ses établissements."
        ))] = None,
        section_activite_principale: Annotated[Optional[str], Field(
            description="Section de l'activité principale (A à U) selon la nomenclature NAF."
        )] = None,
        categorie_entreprise: Annotated[Optional[Literal["PME", "ETI", "GE"]], Field(
            description="Catégorie d'entreprise de l'unité légale (PME, ETI, GE)."
        )] = None,
        nature_juridique: Annotated[Optional[str], Field(
            description="Catégorie juridique de l'unité légale (code INSEE)."
        )] = None,
        etat_administratif: Annotated[Optional[Literal["A", "C"]], Field(
            description="État administratif de l'entreprise (A: Active, C: Cessée)."
        )] = None,
        tranche_effectif_salarie: Annotated[Optional[str], Field(
            description="Tranche d'effectif salarié de l'entreprise (ex : 10-19, 20-49, etc.)."
        )] = None,
        code_postal: Annotated[Optional[str], Field(
            description=f"Code postal en 5 chiffres. {FILTRE_ETABLISSEMENTS}"
        )] = None,
        code_commune: Annotated[Optional[str], Field(
            description=f"Code commune INSEE en 5 caractères. {FILTRE_ETABLISSEMENTS}"
        )] = None,
        departement: Annotated[Optional[str], Field(
            description=f"Code de département en deux ou trois chiffres. {FILTRE_ETABLISSEMENTS}"
        )] = None,
        region: Annotated[Optional[str], Field(
            description=f"Code de région en deux chiffres. {FILTRE_ETABLISSEMENTS}"
        )] = None,
        epci: Annotated[Optional[str], Field(
            description=f"Code EPCI (établissement public de coopération intercommunale). {FILTRE_ETABLISSEMENTS}"
        )] = None,
        est_association: Annotated[Optional[bool], Field(description=(
            "Uniquement les entreprises ayant un identifiant d'association "
            "ou une nature juridique avec mention 'association'."
        ))] = None,
        est_entrepreneur_individuel: Annotated[Optional[bool], Field(
            description="Uniquement les entreprises individuelles."
        )] = None,
        est_ess: Annotated[Optional[bool], Field(
            description="Uniquement les entreprises d'économie sociale et solidaire (ESS)."
        )] = None,
        est_service_public: Annotated[Optional[bool], Field(
            description="Uniquement les structures reconnues comme administration (service public)."
        )] = None,
        est_bio: Annotated[Optional[bool], Field(
            description="Uniquement les entreprises ayant un établissement certifié par l'agence bio."
        )] = None,
        est_rge: Annotated[Optional[bool], Field(description=(
            "Uniquement les entreprises ayant au moins un établissement RGE "
            "(Reconnu Garant de l'Environnement)."
        ))] = None,
        est_finess: Annotated[Optional[bool], Field(description=(
            "Uniquement les entreprises ayant au moins un établissement FINESS "
            "(établissements sanitaires et sociaux)."
        ))] = None,
        est_qualiopi: Annotated[Optional[bool], Field(
            description="Uniquement les entreprises certifiées Qualiopi (organismes de formation)."
        )] = None,
        est_societe_mission: Annotated[Optional[bool], Field(
            description="Uniquement les sociétés à mission (article L.210-10 du code de commerce)."
        )] = None,
        nom_personne: Annotated[Optional[str], Field(
            description="Nom d'un dirigeant ou élu (personne physique ou morale)."
        )] = None,
        prenoms_personne: Annotated[Optional[str], Field(
            description="Prénom(s) d'un dirigeant ou élu (personne physique)."
        )] = None,
        type_personne: Annotated[Optional[Literal["dirigeant", "elu"]], Field(
            description="Type de personne recherchée : dirigeant ou élu."
        )] = None,
        ca_min: Annotated[Optional[float], Field(description="Chiffre d'affaires minimum (en euros).")] = None,
        ca_max: Annotated[Optional[float], Field(description="Chiffre d'affaires maximum (en euros).")] = None,
        resultat_net_min: Annotated[Optional[float], Field(description="Résultat net minimum (en euros).")] = None,
        resultat_net_max: Annotated[Optional[float], Field(description="Résultat net maximum (en euros).")] = None,
        page: Annotated[int, Field(description="Numéro de page des résultats (défaut : 1).")] = 1,
        per_page: Annotated[int, Field(
            ge=1, le=25, description="Nombre de résultats par page (1 à 25, défaut : 10)."
        )] = 10,
        minimal: Annotated[Optional[bool], Field(
            description="Retourne une réponse minimale (sans tous les champs détaillés)."
        )] = None,
        include: Annotated[Optional[str], Field(
            description=f"Champs à inclure avec minimal=true ({INCLUDE_FIELDS})."
        )] = None,
    ) -> TextContent:
        """
        Search French companies by name, address, directors or elected officials,
        narrowed with administrative, geographic, sector, person and financial filters.
        """
        logger.info("rechercher_entreprise called: q=%r, page=%s, per_page=%s", q, page, per_page)
        params = {
            "q": q,
            "activite_principale": activite_principale,
            "section_activite_principale": section_activite_principale,
            "categorie_entreprise": categorie_entreprise,
            "nature_juridique": nature_juridique,
            "etat_administratif": etat_administratif,
            "tranche_effectif_salarie": tranche_effectif_salarie,
            "code_postal": code_postal,
            "code_commune": code_commune,
            "departement": departement,
            "region": region,
            "epci": epci,
            "est_association": est_association,
            "est_entrepreneur_individuel": est_entrepreneur_individuel,
            "est_ess": est_ess,
            "est_service_public": est_service_public,
            "est_bio": est_bio,
            "est_rge": est_rge,
            "est_finess": est_finess,
            "est_qualiopi": est_qualiopi,
            "est_societe_mission": est_societe_mission,
            "nom_personne": nom_personne,
            "prenoms_personne": prenoms_personne,
            "type_personne": type_personne,
            "ca_min": ca_min,
            "ca_max": ca_max,
            "resultat_net_min": resultat_net_min,
            "resultat_net_max": resultat_net_max,
            "page": page,
            "per_page": per_page,
            "minimal": minimal,
            "include": include,
        }
        return await run_query(SEARCH_ENDPOINT, params)

    # =====================================================================
    # MCP TOOL: rechercher_entreprise_geographiques
    # =====================================================================
    @mcp.tool(
        name="rechercher_entreprise_geographiques",
        description=(
            "Recherche des entreprises autour d'un point géographique "
            "(latitude, longitude, rayon, etc.)."
        ),
        annotations=READ_ONLY,
    )
    async def rechercher_entreprise_geographiques(
        lat: Annotated[float, Field(description="Latitude du point de recherche")],
        long: Annotated[float, Field(description="Longitude du point de recherche")],
        radius: Annotated[float, Field(description="Rayon de recherche en km (max 50km)")] = 5,
        activite_principale: Annotated[Optional[str], Field(description="Code NAF ou code APE")] = None,
        section_activite_principale: Annotated[Optional[str], Field(
            description="Section de l'activité principale (A à U)"
        )] = None,
        page: Annotated[int, Field(description="Numéro de page des résultats (défaut : 1).")] = 1,
        per_page: Annotated[int, Field(
            ge=1, le=25, description="Nombre de résultats par page (1 à 25, défaut : 10)."
        )] = 10,
        minimal: Annotated[Optional[bool], Field(description="Retourne une réponse minimale")] = None,
        include: Annotated[Optional[str], Field(
            description=f"Champs à inclure avec minimal=true ({INCLUDE_FIELDS})"
        )] = None,
    ) -> TextContent:
        """Companies with an establishment within `radius` km of (lat, long)."""
        logger.info("rechercher_entreprise_geographiques called: lat=%s, long=%s, radius=%s", lat, long, radius)
        params = {
            "lat": lat,
            "long": long,
            "radius": radius,
            "activite_principale": activite_principale,
            "section_activite_principale": section_activite_principale,
            "page": page,
            "per_page": per_page,
            "minimal": minimal,
            "include": include,
        }
        return await run_query(NEAR_POINT_ENDPOINT, params)

    return mcp


# =====================================================================
# ENTRY POINT
# =====================================================================
async def run_stdio(server: FastMCP, lifecycle: ServerLifecycle):
    """Open the stdio streams, mark the lifecycle connected, then serve MCP on them."""
    low_level = server._mcp_server
    async with stdio_server() as (read_stream, write_stream):
        lifecycle.mark_connected()
        # the low-level run enters the FastMCP lifespan
        await low_level.run(read_stream, write_stream, low_level.create_initialization_options())


async def serve(server: FastMCP, lifecycle: ServerLifecycle):
    """Run `server` over stdio until stdin closes or the lifecycle shuts it down."""
    lifecycle.attach(asyncio.get_running_loop(), asyncio.current_task())
    try:
        await run_stdio(server, lifecycle)
    except asyncio.CancelledError:
        if not lifecycle.is_shutting_down:
            raise
    except Exception as e:
        if not lifecycle.is_connected:
            raise TransportError(f"Could not start the stdio transport: {e}") from e
        raise
    else:
        lifecycle.shutdown(0)
    finally:
        lifecycle.detach()


def main():
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT, stream=sys.stderr)

    lifecycle = ServerLifecycle(connection_check_delay=settings.connection_check_delay)
    server = create_server()
    logger.info("Starting %s %s (registry: %s)", SERVER_NAME, SERVER_VERSION, settings.registry_api_url)

    try:
        asyncio.run(serve(server, lifecycle))
    except KeyboardInterrupt:
        lifecycle.shutdown(0)
    except Exception:
        logger.exception("MCP server stopped on an unrecoverable error")
        lifecycle.shutdown(1)

    sys.exit(lifecycle.exit_code)


if __name__ == "__main__":
    main()
