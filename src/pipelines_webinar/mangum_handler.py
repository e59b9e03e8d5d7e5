"""AWS Lambda handler wrapping the FastAPI app via Mangum."""

from mangum import Mangum

from pipelines_webinar.api.server import app

handler = Mangum(app, lifespan="off")
