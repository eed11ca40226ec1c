from fastapi import FastAPI
from tourhub.api import booking, schedule, resource
from tourhub.src.enums import AppID


# ------------------------------------------------------
# Create separate FastAPI apps for each user domain
# ------------------------------------------------------
app_customer = FastAPI(title="Customer APP")
app_operator = FastAPI(title="Operator APP")

# Tag each app with its AppID
app_customer.state.id = AppID.CUSTOMER
app_operator.state.id = AppID.OPERATOR


# ------------------------------------------------------
# Customer routers
# ------------------------------------------------------
app_customer.include_router(booking.route_customer)


# ------------------------------------------------------
# Operator routers
# ------------------------------------------------------
app_operator.include_router(booking.route_operator)
app_operator.include_router(schedule.route_operator)
app_operator.include_router(resource.route_operator)
