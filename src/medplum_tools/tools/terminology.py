"""Terminology tool (`terminology`).

Wraps the FHIR terminology operations Medplum serves:
- subsumes:      CodeSystem/$subsumes       is codeA an ancestor of codeB?
- translate:     ConceptMap/$translate      map a code through a ConceptMap
- lookup:        CodeSystem/$lookup         display and properties of a code
- validate-code: ValueSet/$validate-code    is the code in the ValueSet?

Each returns the Parameters resource the server answers with.
"""

from __future__ import annotations

from typing import Any

from medplum_tools.envelope import ResultEnvelope
from medplum_tools.medplum_client import MedplumClient, fhir_path
from medplum_tools.models import ToolArgs
from medplum_tools.router import ActionRouter, Route


class TerminologyArgs(ToolArgs):
    action: str
    system: str | None = None
    code: str | None = None
    code_a: str | None = None
    code_b: str | None = None
    concept_map_url: str | None = None
    source: str | None = None
    target: str | None = None
    display: str | None = None
    url: str | None = None


async def subsumes(client: MedplumClient, args: TerminologyArgs) -> Any:
    """Test whether codeA subsumes codeB in a code system."""
    if not args.system or not args.code_a or not args.code_b:
        return ResultEnvelope.failure("system, codeA, and codeB are required")
    params = {"system": args.system, "codeA": args.code_a, "codeB": args.code_b}
    return await client.get(fhir_path("CodeSystem", "$subsumes"), params=params)


async def translate(client: MedplumClient, args: TerminologyArgs) -> Any:
    """Translate a code through a ConceptMap."""
    if not args.concept_map_url or not args.system or not args.code:
        return ResultEnvelope.failure("conceptMapUrl, system, and code are required")
    params = {"url": args.concept_map_url, "system": args.system, "code": args.code}
    if args.source:
        params["source"] = args.source
    if args.target:
        params["target"] = args.target
    return await client.get(fhir_path("ConceptMap", "$translate"), params=params)


async def lookup(client: MedplumClient, args: TerminologyArgs) -> Any:
    """Look up the display and properties of a code."""
    if not args.system or not args.code:
        return ResultEnvelope.failure("system and code are required")
    params = {"system": args.system, "code": args.code}
    return await client.get(fhir_path("CodeSystem", "$lookup"), params=params)


async def validate_code(client: MedplumClient, args: TerminologyArgs) -> Any:
    """Check that a code is in a ValueSet."""
    if not args.url or not args.system or not args.code:
        return ResultEnvelope.failure("url, system, and code are required")
    params = {"url": args.url, "system": args.system, "code": args.code}
    if args.display:
        params["display"] = args.display
    return await client.get(fhir_path("ValueSet", "$validate-code"), params=params)


terminology = ActionRouter(
    {
        "subsumes": Route(subsumes, TerminologyArgs),
        "translate": Route(translate, TerminologyArgs),
        "lookup": Route(lookup, TerminologyArgs),
        "validate-code": Route(validate_code, TerminologyArgs),
    }
)

TERMINOLOGY = terminology.tool(
    "terminology",
    (
        "Terminology operations: test subsumption between two codes, translate a "
        "code through a ConceptMap, look up a code, validate a code against a ValueSet."
    ),
    {
        "system": {"type": "string", "description": "Code system URI, e.g. http://loinc.org."},
        "code": {"type": "string", "description": "The code (translate, lookup, validate-code)."},
        "codeA": {"type": "string", "description": "Candidate ancestor code (subsumes)."},
        "codeB": {"type": "string", "description": "Candidate descendant code (subsumes)."},
        "conceptMapUrl": {"type": "string", "description": "ConceptMap URL (translate)."},
        "source": {"type": "string", "description": "Source ValueSet (translate)."},
        "target": {"type": "string", "description": "Target ValueSet (translate)."},
        "display": {"type": "string", "description": "Display to check (validate-code)."},
        "url": {"type": "string", "description": "ValueSet URL (validate-code)."},
    },
)

TOOLS = [TERMINOLOGY]
