from fastapi import APIRouter, Depends

from otpboard import config
from otpboard.dependencies import get_mailer
from otpboard.email_utils import Mailer
from otpboard.schemas import ContactRequest, MessageResponse

router = APIRouter(tags=["Contact"])

CONTACT_SUBJECT = "New contact form submission"


@router.post("/form-data", response_model=MessageResponse)
async def submit_form(data: ContactRequest, mailer: Mailer = Depends(get_mailer)):
    body = (
        f"Name: {data.name}\n"
        f"E-mail: {data.email}\n"
        f"Number: {data.number}\n"
        f"Message: {data.message}\n"
    )
    await mailer.send(config.CONTACT_RECIPIENT or data.email, CONTACT_SUBJECT, body)
    return {"message": "Form data submitted successfully"}
