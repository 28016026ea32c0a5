# Function declarations handed to the model on every call.
# Parameter names are the ones the model sees; the dispatcher validates them
# against zeina.tools.arguments before anything touches the store.

book_appointment_function = {
    "name": "book_appointment",
    "description": "Book a new consultation with an expert. Only call after the user confirmed expert, date and time.",
    "parameters": {
        "type": "object",
        "properties": {
            "expertId": {"type": "string", "description": "The ID of the expert from the expert list."},
            "date": {"type": "string", "description": "YYYY-MM-DD format."},
            "time": {"type": "string", "description": "Time string (e.g. 10:00 AM)."},
        },
        "required": ["expertId", "date", "time"],
    },
}

get_my_appointments_function = {
    "name": "get_my_appointments",
    "description": "Retrieve the current user's active appointments, most recent first.",
    "parameters": {
        "type": "object",
        "properties": {},
    },
}

reschedule_appointment_function = {
    "name": "reschedule_appointment",
    "description": "Move an existing appointment to a new date and time.",
    "parameters": {
        "type": "object",
        "properties": {
            "appointmentId": {
                "type": "string",
                "description": "The ID of the appointment, as returned by get_my_appointments.",
            },
            "newDate": {"type": "string", "description": "The new date (YYYY-MM-DD)."},
            "newTime": {"type": "string", "description": "The new time (e.g. 03:00 PM)."},
        },
        "required": ["appointmentId", "newDate", "newTime"],
    },
}

cancel_appointment_function = {
    "name": "cancel_appointment",
    "description": "Cancel an existing appointment.",
    "parameters": {
        "type": "object",
        "properties": {
            "appointmentId": {
                "type": "string",
                "description": "The ID of the appointment, as returned by get_my_appointments.",
            },
        },
        "required": ["appointmentId"],
    },
}

generate_health_image_function = {
    "name": "generate_health_image",
    "description": "Generate an image to visualize health concepts, meals, or exercises.",
    "parameters": {
        "type": "object",
        "properties": {
            "prompt": {"type": "string", "description": "A descriptive prompt for the image to generate."},
        },
        "required": ["prompt"],
    },
}

TOOL_DECLARATIONS = [
    book_appointment_function,
    get_my_appointments_function,
    reschedule_appointment_function,
    cancel_appointment_function,
    generate_health_image_function,
]


def tool_names() -> list[str]:
    return [declaration["name"] for declaration in TOOL_DECLARATIONS]
