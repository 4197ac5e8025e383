"""Компилятор build pack'ов в объекты Tekton."""
