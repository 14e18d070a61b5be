from fastapi import FastAPI
from trainerbook.routers import rou_availability, rou_booking
from trainerbook.configuration.monitor import instrument_fastapi

app = FastAPI(
    title="TrainerBook Scheduler API",
    description="Trainer availability and session booking API",
    version="1.0.0"
)

# Include all routers
app.include_router(rou_availability.router)
app.include_router(rou_booking.router)

# Instrument app with Azure Monitor
instrument_fastapi(app)

if __name__ == '__main__':
    import uvicorn
    uvicorn.run(app, host='0.0.0.0', port=8000)
