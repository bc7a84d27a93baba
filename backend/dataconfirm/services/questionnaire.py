"""
Questionnaire shown after element confirmation.

Question ids are the keys the client submits answers under. The q1..q10 ids
belong to the earlier free-text questionnaire; old submissions still carry
them so their texts stay resolvable.
"""

from typing import Any, Dict, List

QUESTIONS: List[Dict[str, Any]] = [
    {
        "id": "integrationMethod",
        "label": "1. Kaedah Integrasi",
        "tooltip": "Pilih kaedah pertukaran data antara sistem seperti API, SFTP, dll.",
        "type": "dropdown",
        "options": ["REST API", "SOAP (WSDL)", "MYGDX", "SFTP", "MQ", "Direct DB", "Others"],
    },
    {
        "id": "messageFormat",
        "label": "2. Format Mesej",
        "tooltip": "Format fail atau mesej yang digunakan semasa penghantaran data.",
        "type": "dropdown",
        "options": ["JSON", "XML", "CSV", "XLSX", "TXT (Fixed Width)", "Others"],
    },
    {
        "id": "transactionType",
        "label": "3. Jenis Transaksi",
        "tooltip": "Jenis urus niaga pertukaran data seperti Batch atau Real-time.",
        "type": "dropdown",
        "options": ["Batch", "Real-time", "Push", "Pull", "Streaming", "Others"],
    },
    {
        "id": "frequency",
        "label": "4. Frekuensi",
        "tooltip": "Kekerapan penghantaran data.",
        "type": "dropdown",
        "options": ["Real-time", "On Demand", "Harian", "Mingguan", "Bulanan", "Others"],
    },
    {
        "id": "url",
        "label": "5. URL Web Services",
        "tooltip": "Alamat endpoint API/web service yang digunakan (jika ada).",
        "type": "text",
    },
    {
        "id": "request",
        "label": "6. Request",
        "tooltip": "Contoh atau struktur mesej permintaan daripada sistem anda.",
        "type": "text",
    },
    {
        "id": "response",
        "label": "7. Respond",
        "tooltip": "Contoh atau struktur mesej jawapan dari sistem anda.",
        "type": "text",
    },
    {
        "id": "remarks",
        "label": "8. Remarks",
        "tooltip": "Sebarang catatan tambahan mengenai proses integrasi.",
        "type": "text",
    },
    {
        "id": "dataInvolved",
        "label": "9. Data yang Terlibat",
        "tooltip": "Senarai medan data dan struktur yang terlibat dalam integrasi ini.",
        "type": "grid",
    },
]

LEGACY_QUESTIONS: Dict[str, str] = {
    "q1": "1. Apakah data yang akan dihantar atau diterima?",
    "q2": "2. Seberapa kerap data dikemas kini atau diperlukan?",
    "q3": "3. Apakah kaedah integrasi yang disokong?",
    "q4": "4. Adakah anda mempunyai dokumentasi API atau WSDL?",
    "q5": "5. Apakah logik semakan atau perniagaan sistem anda?",
    "q6": "6. Siapakah pegawai teknikal (PIC) untuk ujian integrasi?",
    "q7": "7. Adakah terdapat sekatan firewall/IP?",
    "q8": "8. Adakah persekitaran UAT tersedia untuk ujian?",
    "q9": "9. Apakah masa respons yang dijangka (SLA)?",
    "q10": "10. Adakah anda memerlukan log audit, mesej ralat, atau callback?",
}

GRID_QUESTION_ID = "dataInvolved"
MARKER_QUESTION_ID = "_submission"

# Form keys that identify the submission rather than answer a question
RESERVED_KEYS = frozenset({
    "agency",
    "system",
    "module",
    "api",
    "module_group",
    "dataGrid",
    "gridRows",
    "grid_rows",
    "answers",
    "agencySystem",
    "apiOrModuleName",
    "elements",
    "submission_id",
    "flowType",
})
RESERVED_PREFIXES = ("showTooltip_",)

_LABELS = {q["id"]: q["label"] for q in QUESTIONS}


def is_reserved(key: str) -> bool:
    return key in RESERVED_KEYS or key.startswith(RESERVED_PREFIXES)


def question_text(question_id: str) -> str:
    """Display text for a question id; unknown ids are returned unchanged"""
    if question_id in _LABELS:
        return _LABELS[question_id]
    return LEGACY_QUESTIONS.get(question_id, question_id)
