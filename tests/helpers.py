"""Constants shared by the tests."""

TEST_IMAGE_URL = "https://uploads.example.com/prescriptions/rx-001.jpg"

PRESCRIPTION_TEXT = (
    "Dr. Jane Smith\n"
    "Patient: John Doe\n"
    "Amoxicillin 500mg capsules\n"
    "Sig: Take 1 capsule three times daily\n"
    "Qty: 30\n"
    "Refills: 2"
)

COMPLETE_DETAILS = {
    "name": "amoxicillin",
    "dosage": "500mg",
    "quantity": 30,
    "instructions": "Take 1 capsule three times daily",
}
