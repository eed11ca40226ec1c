import argparse
from http import HTTPStatus
from requests import post
from datetime import date, datetime, timedelta, timezone

from tourhub.src.enums import AddonType, BookingKind, InsuranceType
from tourhub.src.urls import URL_BOOKING, URL_BOOKING_QUOTE
from tourhub.src.db import (
    Vehicle,
    Driver,
    TransferRoute,
    RouteTariff,
    RentalTariff,
    sessionMaker,
    engine,
    ORMbase,
)


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    session = sessionMaker()
    ORMbase.metadata.drop_all(engine)
    session.commit()
    print("* All tables deleted")
    session.close()


def createTables():
    session = sessionMaker()
    ORMbase.metadata.create_all(engine)
    session.commit()
    print("* All tables created")
    session.close()


def initDB():
    session = sessionMaker()
    operatorId = 1

    sedan = Vehicle(
        operator_id=operatorId,
        registration_number="A101BC41",
        name="Toyota Camry",
        category="sedan",
        capacity=4,
    )
    minivan = Vehicle(
        operator_id=operatorId,
        registration_number="K202MP41",
        name="Hyundai Starex",
        category="minivan",
        capacity=6,
    )
    suv = Vehicle(
        operator_id=operatorId,
        registration_number="O303TT41",
        name="Toyota Land Cruiser",
        category="suv",
        capacity=5,
    )
    session.add_all([sedan, minivan, suv])
    session.flush()
    print("* Created vehicles")

    session.add_all(
        [
            Driver(
                operator_id=operatorId,
                full_name="Ivan Petrov",
                phone_number="tel:+7-914-000-0001",
                category="B",
                vehicle_id=sedan.id,
            ),
            Driver(
                operator_id=operatorId,
                full_name="Sergei Smirnov",
                phone_number="tel:+7-914-000-0002",
                category="D",
                vehicle_id=minivan.id,
            ),
            Driver(
                operator_id=operatorId,
                full_name="Anna Volkova",
                phone_number="tel:+7-914-000-0003",
                category="B",
            ),
        ]
    )
    session.flush()
    print("* Created drivers")

    airport = TransferRoute(
        operator_id=operatorId,
        name="Airport - City centre",
        from_location="Yelizovo airport",
        to_location="Petropavlovsk-Kamchatsky centre",
        default_rate=3500 * 100,
    )
    session.add(airport)
    session.flush()
    today = date.today()
    session.add_all(
        [
            RouteTariff(
                route_id=airport.id,
                rate=3000 * 100,
                valid_from=today,
                valid_to=today + timedelta(days=365),
            ),
            RouteTariff(
                route_id=airport.id,
                rate=4500 * 100,
                valid_from=date(today.year, 7, 1),
                valid_to=date(today.year, 8, 31),
            ),
        ]
    )
    for category, daily, weekly, monthly in [
        ("sedan", 4000, 25000, 90000),
        ("minivan", 6000, 38000, None),
        ("suv", 8000, 50000, 180000),
    ]:
        session.add(
            RentalTariff(
                operator_id=operatorId,
                category=category,
                daily_rate=daily * 100,
                weekly_rate=weekly * 100 if weekly else None,
                monthly_rate=monthly * 100 if monthly else None,
                deposit=daily * 300,
                valid_from=today,
                valid_to=today + timedelta(days=365),
            )
        )
    session.commit()
    print("* Created routes and tariffs")
    print("* Initialization completed")
    session.close()


def POST(URL: str, header: dict = {}, status_code: int = HTTPStatus.CREATED, **kwargs):
    response = post(URL, headers=header, **kwargs)
    assert response.status_code == status_code, response.text
    return response


def testDB():
    # Base URL
    BASE_URL = "http://127.0.0.1:8080/customer"
    pickup = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=2)

    transferData = {
        "kind": BookingKind.TRANSFER,
        "operator_id": 1,
        "customer_id": 1,
        "route_id": 1,
        "starting_at": pickup.isoformat(),
        "ending_at": (pickup + timedelta(hours=1)).isoformat(),
        "party_size": 5,
        "addons": [AddonType.CHILD_SEAT],
    }
    quote = POST(
        (BASE_URL + URL_BOOKING_QUOTE),
        data=transferData,
        status_code=HTTPStatus.OK,
    )
    print(f"* Quoted transfer for {quote.json()['total']}")
    POST(
        (BASE_URL + URL_BOOKING),
        data=transferData,
        status_code=HTTPStatus.CREATED,
    )
    print("* Booked transfer")

    rentalData = {
        "kind": BookingKind.RENTAL,
        "operator_id": 1,
        "customer_id": 2,
        "vehicle_category": "suv",
        "starting_at": pickup.isoformat(),
        "ending_at": (pickup + timedelta(days=10)).isoformat(),
        "addons": [AddonType.GPS],
        "insurance": InsuranceType.BASIC,
    }
    POST(
        (BASE_URL + URL_BOOKING),
        data=rentalData,
        status_code=HTTPStatus.CREATED,
    )
    print("* Booked rental")


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    # remove tables
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.cr:
        createTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
    if args.rm:
        removeTables()
