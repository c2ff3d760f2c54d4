from flask import Flask, request, jsonify
from pydantic import ValidationError as PydanticValidationError
import json
import logging
import secrets
import string
import time

from api.models import Message, MessageType
from api.services import build_services, Services
from lib.error_handler import AppError, NotFoundError

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
}

def generate_message_id() -> str:
    suffix = ''.join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(9))
    return f"msg-{int(time.time() * 1000)}-{suffix}"

def create_app(services: Services = None) -> Flask:
    app = Flask(__name__)
    services = services or build_services()
    app.config['SERVICES'] = services

    @app.after_request
    def add_cors_headers(response):
        response.headers.update(CORS_HEADERS)
        return response

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        logger.error(f"Request failed: {error.message}")
        return jsonify({'error': error.user_message}), error.status_code

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.route('/', methods=['GET'])
    def root():
        """Basic health check"""
        return jsonify({
            'status': 'healthy',
            'store': 'remote' if services.settings.remote else 'local',
            'webhook_configured': services.notifier.configured
        })

    @app.route('/send-message', methods=['POST'])
    async def send_message():
        try:
            if 'application/json' not in (request.content_type or ''):
                return jsonify({'error': 'Content-Type must be application/json'}), 400

            body_text = request.get_data(as_text=True)
            if not body_text or not body_text.strip():
                return jsonify({'error': 'Request body is required'}), 400

            try:
                data = json.loads(body_text)
            except ValueError as e:
                return jsonify({'error': 'Invalid JSON in request body', 'details': str(e)}), 400

            if not isinstance(data, dict):
                return jsonify({'error': 'Request body must be a JSON object'}), 400

            conversation_id = data.get('conversationId')
            sender_id = data.get('senderId')
            sender_name = data.get('senderName')
            content = data.get('content')
            if not conversation_id or not sender_id or not sender_name or not content:
                return jsonify({
                    'error': 'Missing required fields: conversationId, senderId, senderName, content'
                }), 400

            message_type = data.get('type', MessageType.TEXT.value)
            if message_type not in (MessageType.TEXT.value, MessageType.AUDIO.value):
                return jsonify({'error': f"Unsupported message type: {message_type}"}), 400

            conversation = None
            if not services.settings.remote:
                try:
                    conversation = services.directory.get_conversation(conversation_id)
                except NotFoundError as e:
                    return jsonify({'error': e.user_message}), 404

            try:
                message = Message(
                    id=generate_message_id(),
                    conversation_id=conversation_id,
                    sender_id=sender_id,
                    sender_name=sender_name,
                    type=message_type,
                    content=content,
                    duration=data.get('duration')
                )
            except PydanticValidationError as e:
                return jsonify({'error': 'Invalid message fields', 'details': str(e)}), 400
            logger.info(f"Message received via HTTP: {message.id}")

            await services.store.append(message)
            if conversation is None:
                conversation = services.directory.conversations.get(conversation_id)
            if conversation is not None:
                conversation.record_message(message)

            return jsonify({
                'success': True,
                'message': 'Message sent successfully',
                'messageId': message.id
            })

        except AppError as e:
            logger.error(f"Error in send-message: {e.message}")
            if e.status_code < 500:
                return jsonify({'error': e.user_message}), e.status_code
            return jsonify({'error': 'Internal server error', 'details': e.message}), e.status_code
        except Exception as e:
            logger.error(f"Error in send-message: {str(e)}", exc_info=True)
            return jsonify({'error': 'Internal server error', 'details': str(e)}), 500

    @app.route('/send-webhook', methods=['POST'])
    async def send_webhook():
        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return jsonify({'error': 'Invalid JSON in request body'}), 400

        logger.info(f"Webhook payload received: {payload.get('messageId')}")
        if not services.notifier.configured:
            logger.error("WEBHOOK_URL environment variable not set")
            return jsonify({'error': 'Webhook URL not configured'}), 500

        result = await services.notifier.notify(payload)
        if not result.delivered:
            return jsonify({
                'error': 'Webhook request failed',
                'status': result.status,
                'details': result.body or result.error
            }), 500

        response = {
            'success': True,
            'message': 'Webhook sent successfully',
            'webhookResponse': result.body
        }
        if result.reply is not None:
            response['replyMessageId'] = result.reply.id
        return jsonify(response)

    @app.route('/contacts', methods=['POST'])
    def add_contact():
        data = request.get_json(silent=True) or {}
        conversation = services.directory.add_contact(data.get('name'), data.get('phone'))
        return jsonify(conversation.model_dump(mode='json')), 201

    @app.route('/conversations', methods=['GET'])
    def list_conversations():
        conversations = services.directory.list_conversations()
        return jsonify({'conversations': [c.model_dump(mode='json') for c in conversations]})

    @app.route('/auth/send-code', methods=['POST'])
    async def auth_send_code():
        data = request.get_json(silent=True) or {}
        services.auth.set_phone_number(data.get('phone', ''))
        await services.auth.send_verification_code()
        return jsonify({'step': services.auth.state.step})

    @app.route('/auth/verify', methods=['POST'])
    async def auth_verify():
        data = request.get_json(silent=True) or {}
        await services.auth.verify_code(data.get('code'))
        return jsonify({'step': services.auth.state.step})

    @app.route('/auth/profile', methods=['POST'])
    async def auth_profile():
        data = request.get_json(silent=True) or {}
        user = await services.auth.complete_profile(data.get('name'), data.get('avatar'))
        return jsonify({'step': services.auth.state.step, 'user': user.model_dump()})

    @app.route('/auth/logout', methods=['POST'])
    def auth_logout():
        services.auth.logout()
        return jsonify({'step': services.auth.state.step})

    @app.route('/conversations/<conversation_id>/messages', methods=['GET'])
    async def conversation_messages(conversation_id):
        messages = await services.messaging.messages_for(conversation_id, require_known=not services.settings.remote)
        return jsonify({'messages': [m.to_record() for m in messages]})

    return app
