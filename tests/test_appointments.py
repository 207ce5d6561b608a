from clinic_booking import appointments
from clinic_booking.models import UserAppointments


def sample_data():
    return UserAppointments.model_validate(
        {
            "appointmentsByDate": {
                "2025-03-12": [{"id": 3, "status": "BOOKED", "slot": "11:00AM - 11:30AM"}],
                "2025-03-11": [
                    {"id": 1, "status": "BOOKED", "slot": "10:00AM - 10:30AM"},
                    {"id": 2, "status": "CANCELLED", "slot": "10:30AM - 11:00AM"},
                ],
            }
        }
    )


def test_flatten_appointments_orders_by_date():
    assert [a.id for a in appointments.flatten_appointments(sample_data())] == [1, 2, 3]


def test_active_bookings_only_booked():
    assert [a.id for a in appointments.active_bookings(sample_data())] == [1, 3]


def test_find_appointment_matches_string_ids():
    assert appointments.find_appointment(sample_data(), "3").slot == "11:00AM - 11:30AM"
    assert appointments.find_appointment(sample_data(), 2).status == "CANCELLED"
    assert appointments.find_appointment(sample_data(), 99) is None


def test_appointment_accepts_alternate_field_names():
    data = UserAppointments.model_validate(
        {"appointmentsByDate": {"2025-03-11": [{"appointmentId": 8, "timeSlot": "9:00AM - 9:30AM", "patientId": 5}]}}
    )

    apt = appointments.flatten_appointments(data)[0]
    assert apt.id == 8
    assert apt.slot == "9:00AM - 9:30AM"
    assert apt.user_id == 5


def test_refresh_counter():
    counter = appointments.RefreshCounter()
    seen = counter.value

    assert counter.needs_refresh(seen) is False
    counter.bump()
    assert counter.needs_refresh(seen) is True
    assert counter.needs_refresh(counter.value) is False
