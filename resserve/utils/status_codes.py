from http import HTTPStatus

status_codes = {
    status.value: status.phrase.encode() for status in HTTPStatus
}
