"""Medplum tools exposed to the calling agent.

Each module defines one or more tool descriptors: a name, a description
the agent reads to decide when to call it, a JSON schema for its
arguments, and the handler that runs it against Medplum. Most tools are
"consolidated": one tool name, many operations selected by a
discriminant field (usually `action`).

Tools are organized by domain:
- resource.py:     manageResource, manageClinicalReport
- automation.py:   manageAutomation (Bots, Subscriptions, Agents)
- patient_data.py: patientData ($everything, summary, C-CDA)
- project.py:      manageProject
- media.py:        manageMedia
- start_new.py:    startNew (projects, users, patients)
- history.py:      manageHistory
- terminology.py:  terminology
- bulk_data.py:    bulkData
- operations.py:   executeFhirOperation, executeAdminTask
- fhircast.py:     manageFhirCast
- general.py:      whoAmI, graphql, sendEmail, postBundle, apiRequest
"""

from medplum_tools.tools import (
    automation,
    bulk_data,
    fhircast,
    general,
    history,
    media,
    operations,
    patient_data,
    project,
    resource,
    start_new,
    terminology,
)

ALL_TOOLS = [
    *resource.TOOLS,
    *automation.TOOLS,
    *patient_data.TOOLS,
    *project.TOOLS,
    *media.TOOLS,
    *start_new.TOOLS,
    *history.TOOLS,
    *terminology.TOOLS,
    *bulk_data.TOOLS,
    *operations.TOOLS,
    *fhircast.TOOLS,
    *general.TOOLS,
]
