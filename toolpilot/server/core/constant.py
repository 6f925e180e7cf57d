PROJECT_NAME = "toolpilot"
API_V1_STR = "/api/v1"
