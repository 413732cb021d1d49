"""Patient record tool (`patientData`).

- everything: GET /Patient/{id}/$everything (the patient compartment Bundle)
- summary:    the Patient plus active problem, medication and recent lab lists
- ccda:       GET /Patient/{id}/$docref (C-CDA document reference)
"""

from __future__ import annotations

from typing import Any

from medplum_tools.medplum_client import MedplumClient, fhir_path
from medplum_tools.models import ToolArgs
from medplum_tools.router import ActionRouter, Route

RECENT_OBSERVATION_COUNT = 10


class PatientDataArgs(ToolArgs):
    action: str
    patient_id: str


async def everything(client: MedplumClient, args: PatientDataArgs) -> Any:
    """Return the patient compartment as a Bundle."""
    return await client.get(fhir_path("Patient", args.patient_id, "$everything"))


async def summary(client: MedplumClient, args: PatientDataArgs) -> dict[str, Any]:
    """Patient plus conditions, medication requests and the latest observations.

    The three searches return raw searchset Bundles, as Medplum sends them.
    """
    patient_ref = f"patient=Patient/{args.patient_id}"
    patient = await client.read_resource("Patient", args.patient_id)
    conditions = await client.search("Condition", patient_ref)
    medications = await client.search("MedicationRequest", patient_ref)
    observations = await client.search(
        "Observation",
        f"{patient_ref}&_count={RECENT_OBSERVATION_COUNT}&_sort=-date",
    )
    return {
        "patient": patient,
        "conditions": conditions,
        "medications": medications,
        "recentObservations": observations,
    }


async def ccda(client: MedplumClient, args: PatientDataArgs) -> Any:
    """Return the patient's C-CDA document reference."""
    return await client.get(fhir_path("Patient", args.patient_id, "$docref"))


patient_data = ActionRouter(
    {
        "everything": Route(everything, PatientDataArgs),
        "summary": Route(summary, PatientDataArgs),
        "ccda": Route(ccda, PatientDataArgs),
    },
    context_fields=("patientId",),
)

PATIENT_DATA = patient_data.tool(
    "patientData",
    (
        "Read a patient's record: the full $everything Bundle, a clinical summary "
        "(conditions, medications, recent observations), or a C-CDA export."
    ),
    {"patientId": {"type": "string", "description": "The Patient ID."}},
    required=["patientId"],
)

TOOLS = [PATIENT_DATA]
